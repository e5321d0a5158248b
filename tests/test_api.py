import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
import pytest
import requests
from tiledocs import commits
from tiledocs.client import Client, ContentUpdate
from tiledocs.errors import NotFound, OwnershipViolation, SchemaViolation, TransportFailure
from tiledocs.http_client import HttpStore, request_json
from tiledocs.streamid import StreamID, parse_stream_id


def _post_genesis(flask_client, identity, content, **kw):
    r = flask_client.post('/api/v0/streams', json={'genesis': commits.create_genesis(identity, content, **kw)})
    assert r.status_code == 201
    return r.get_json()


def test_health(flask_client):
    r = flask_client.get('/health')
    assert r.status_code == 200
    assert r.get_json()['status'] == 'ok'


def test_index_lists_streams(flask_client, owner):
    state = _post_genesis(flask_client, owner, {'t': 1}, family='notes')
    r = flask_client.get('/')
    assert r.status_code == 200
    body = r.get_data(as_text=True)
    assert state['stream_id'] in body
    assert owner.did in body


def test_scenario_over_http(node, owner_session, other_session):
    client = Client(HttpStore(node))
    sid = client.create_document(owner_session, {'test': '123'})
    doc = client.load_document(sid)
    assert doc.content == {'test': '123'}
    client.update(owner_session, doc, ContentUpdate.merge({'updated': True}))
    updated = client.load_document(sid)
    assert updated.content == {'test': '123', 'updated': True}
    with pytest.raises(OwnershipViolation):
        client.update(other_session, updated, {'pwned': True})
    assert client.load_document(sid).content == {'test': '123', 'updated': True}
    assert client.load_document(sid.genesis).content == {'test': '123'}
    assert client.store.list_streams() == [str(sid)]


def test_schema_over_http(node, owner_session):
    client = Client(HttpStore(node))
    ref = client.create_schema(owner_session, {'type': 'object', 'required': ['name']})
    with pytest.raises(SchemaViolation) as exc:
        client.create_document(owner_session, {'age': 1}, schema=ref)
    assert exc.value.extra['errors']
    assert client.validate({'name': 'Alice'}, ref)


def test_missing_stream_over_http(node):
    with pytest.raises(NotFound):
        HttpStore(node).load(StreamID('ab' * 32))


def test_bad_requests_are_400(flask_client):
    r = flask_client.post('/api/v0/streams', json={'nope': 1})
    assert r.status_code == 400
    assert r.get_json()['error'] == 'invalid_input'
    assert flask_client.post('/api/v0/streams', data='not json').status_code == 400
    assert flask_client.get('/api/v0/streams/not-an-id').status_code == 400
    assert flask_client.get('/api/v0/streams?limit=many').status_code == 400


def test_id_kind_checked_by_route(flask_client, owner):
    state = _post_genesis(flask_client, owner, {'t': 1})
    assert flask_client.get(f"/api/v0/commits/{state['stream_id']}").status_code == 400
    assert flask_client.get(f"/api/v0/streams/{state['commit_id']}").status_code == 400
    assert flask_client.get(f"/api/v0/commits/{state['commit_id']}").get_json()['content'] == {'t': 1}


def test_unknown_stream_is_404(flask_client):
    r = flask_client.get(f"/api/v0/streams/{StreamID('ab' * 32)}")
    assert r.status_code == 404
    assert r.get_json()['error'] == 'not_found'


def test_foreign_update_is_403(flask_client, owner, other):
    state = _post_genesis(flask_client, owner, {'t': 1})
    genesis_cid = parse_stream_id(state['stream_id']).genesis_cid
    update = commits.create_update(other, genesis_cid, genesis_cid, {'t': 2})
    r = flask_client.post(f"/api/v0/streams/{state['stream_id']}/commits", json={'commit': update})
    assert r.status_code == 403
    assert r.get_json()['error'] == 'ownership_violation'
    assert r.get_json()['extra']['signer'] == other.did


def test_schema_violation_is_422(flask_client, owner):
    schema_state = _post_genesis(flask_client, owner, {'type': 'object', 'required': ['name']}, family='schema')
    genesis = commits.create_genesis(owner, {'age': 3}, schema=schema_state['commit_id'])
    r = flask_client.post('/api/v0/streams', json={'genesis': genesis})
    assert r.status_code == 422
    assert r.get_json()['error'] == 'schema_violation'


def test_metrics_count_commits(flask_client, owner):
    _post_genesis(flask_client, owner, {'t': 1})
    r = flask_client.get('/metrics')
    assert r.status_code == 200
    assert b'tiledocs_commits_accepted_total' in r.data
    counts = flask_client.get('/admin/metrics').get_json()
    assert counts == {'streams': 1, 'commits': 1}


def test_connection_error_is_transport_failure(monkeypatch):
    def refuse(*a, **kw):
        raise requests.ConnectionError('connection refused')

    monkeypatch.setattr(requests, 'request', refuse)
    with pytest.raises(TransportFailure):
        HttpStore('http://127.0.0.1:1').list_streams()


class _Plain:
    def __init__(self, status_code):
        self.status_code = status_code

    def json(self):
        raise ValueError('no json')


@pytest.mark.parametrize('status', [500, 503, 404])
def test_non_json_error_is_transport_failure(monkeypatch, status):
    monkeypatch.setattr(requests, 'request', lambda *a, **kw: _Plain(status))
    with pytest.raises(TransportFailure) as exc:
        request_json('GET', 'http://node.test/api/v0/streams')
    assert exc.value.extra['status'] == status


def test_genesis_with_bad_header_types_is_400(flask_client, owner):
    genesis = commits.sign_commit({'header': {'controllers': [owner.did], 'family': ['x']}, 'data': {}}, owner)
    r = flask_client.post('/api/v0/streams', json={'genesis': genesis})
    assert r.status_code == 400
    assert r.get_json()['error'] == 'invalid_input'


def test_non_schema_reference_is_400(flask_client, owner):
    plain = _post_genesis(flask_client, owner, {'type': 'nope'})
    genesis = commits.create_genesis(owner, {'a': 1}, schema=plain['commit_id'])
    r = flask_client.post('/api/v0/streams', json={'genesis': genesis})
    assert r.status_code == 400
    assert r.get_json()['error'] == 'invalid_input'
