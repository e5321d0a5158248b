import requests
import logging
from typing import Dict, Optional, Union
from urllib.parse import quote
from .errors import TransportFailure, error_from_dict
from .streamid import CommitID, StreamID, parse_commit_id, parse_id

logger = logging.getLogger(__name__)


def request_json(method: str, url: str, payload: Optional[dict] = None, timeout: int = 15) -> dict:
    """Perform one JSON request against a node. Returns the decoded body.

    There is no retry: connection errors and 5xx answers raise TransportFailure,
    error bodies from the node are raised as the matching TileDocsError.
    """
    try:
        r = requests.request(method, url, json=payload, timeout=timeout)
    except requests.RequestException as e:
        logger.warning('%s %s failed: %s', method, url, e)
        raise TransportFailure(f'{method} {url} failed: {e}')
    try:
        body = r.json()
    except ValueError:
        body = None
    if r.status_code >= 500 or (r.status_code >= 400 and not isinstance(body, dict)):
        logger.error('%s %s returned %s', method, url, r.status_code)
        raise TransportFailure(f'{method} {url} returned {r.status_code}', extra={'status': r.status_code})
    if r.status_code >= 400:
        raise error_from_dict(body, r.status_code)
    if not isinstance(body, dict):
        raise TransportFailure(f'{method} {url} returned a non-JSON body')
    return body


class HttpStore:
    """Client-side view of a remote node; same interface as DocumentStore."""

    def __init__(self, base_url: str, timeout: int = 15):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f'{self.base_url}/api/v0{path}'

    def create(self, genesis: Dict) -> Dict:
        return request_json('POST', self._url('/streams'), {'genesis': genesis}, self.timeout)

    def apply(self, stream_id: Union[str, StreamID], signed: Dict) -> Dict:
        return request_json('POST', self._url(f'/streams/{quote(str(stream_id))}/commits'), {'commit': signed}, self.timeout)

    def load(self, id: Union[str, StreamID, CommitID]) -> Dict:
        parsed = parse_id(id)
        kind = 'streams' if isinstance(parsed, StreamID) else 'commits'
        return request_json('GET', self._url(f'/{kind}/{quote(str(parsed))}'), timeout=self.timeout)

    def list_streams(self, limit: int = 100):
        return request_json('GET', self._url(f'/streams?limit={int(limit)}'), timeout=self.timeout).get('streams', [])

    def schema_definition(self, schema_ref: str) -> Dict:
        return self.load(parse_commit_id(schema_ref))['content']
