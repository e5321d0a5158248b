import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
import pytest
import requests
from tiledocs import db
from tiledocs.client import Client, Session
from tiledocs.did import authenticate
from tiledocs.store import DocumentStore
from tiledocs.ui import app


@pytest.fixture
def store(tmp_path, monkeypatch):
    monkeypatch.setattr(db, 'DB_PATH', tmp_path / 'tiledocs.db')
    return DocumentStore()


@pytest.fixture
def client(store):
    return Client(store)


@pytest.fixture
def owner():
    return authenticate(bytes(32))


@pytest.fixture
def other():
    return authenticate(bytes(range(1, 33)))


@pytest.fixture
def owner_session(owner):
    return Session(owner)


@pytest.fixture
def other_session(other):
    return Session(other)


@pytest.fixture
def flask_client(store):
    app.config['STORE'] = store
    yield app.test_client()
    app.config.pop('STORE', None)


class _FlaskResponse:
    def __init__(self, resp):
        self.status_code = resp.status_code
        self._resp = resp

    def json(self):
        data = self._resp.get_json(silent=True)
        if data is None:
            raise ValueError('response is not JSON')
        return data


@pytest.fixture
def node(flask_client, monkeypatch):
    """Route requests issued by HttpStore to the Flask test client."""
    def fake_request(method, url, json=None, timeout=None):
        path = url.split('://', 1)[1]
        path = path[path.index('/'):]
        return _FlaskResponse(flask_client.open(path, method=method, json=json))

    monkeypatch.setattr(requests, 'request', fake_request)
    return 'http://node.test'
