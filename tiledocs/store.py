"""Document store: persists signed commits and enforces the update protocol.

The store is the authority on three rules:

* the controller named in a genesis commit is the owner, forever;
* an update is accepted only if its signature verifies against the signer's
  did:key and the signer is the owner (checked before the schema);
* if the genesis names a schema, every commit's data must validate against it.

Rejected commits leave the stream untouched. Accepted updates are appended in
arrival order, so concurrent writers get last-writer-wins.
"""
import json
import logging
from typing import Dict, Union
from . import commits, db, schema
from .errors import InvalidInput, NotFound, OwnershipViolation
from .streamid import CommitID, StreamID, parse_commit_id, parse_id, parse_stream_id

logger = logging.getLogger(__name__)


class DocumentStore:
    """In-process store on top of the SQLite tables in `tiledocs.db`."""

    def __init__(self):
        db.init_db()

    def create(self, genesis: Dict) -> Dict:
        commits.check_shape(genesis)
        if not commits.is_genesis(genesis):
            raise InvalidInput('expected a genesis commit')
        signer = commits.verify_commit(genesis)
        header = genesis['payload']['header']
        controller = header['controllers'][0]
        if signer != controller:
            raise OwnershipViolation('genesis must be signed by its controller', extra={'signer': signer, 'controller': controller})
        content = genesis['payload']['data']
        schema_ref = header.get('schema')
        if schema_ref:
            schema.enforce(content, self.schema_definition(schema_ref), schema_ref)
        cid = commits.commit_cid(genesis)
        created = db.insert_stream(cid, controller, schema_ref, header.get('family'), header.get('tags'), genesis, content)
        stream_id = StreamID(cid)
        if created:
            logger.info('created stream %s controller=%s', stream_id, controller)
        else:
            logger.info('genesis for existing stream %s, returning current state', stream_id)
        return self.load(stream_id)

    def apply(self, stream_id: Union[str, StreamID], signed: Dict) -> Dict:
        sid = parse_stream_id(stream_id)
        row = db.get_stream(sid.genesis_cid)
        if not row:
            raise NotFound(f'stream {sid} not found')
        commits.check_shape(signed)
        if commits.is_genesis(signed):
            raise InvalidInput('expected an update commit')
        payload = signed['payload']
        if payload['id'] != sid.genesis_cid:
            raise InvalidInput('commit belongs to another stream')
        signer = commits.verify_commit(signed)
        if signer != row['controller']:
            logger.warning('rejected commit on %s: signer %s is not owner %s', sid, signer, row['controller'])
            raise OwnershipViolation(f'{signer} does not own stream {sid}', extra={'signer': signer, 'owner': row['controller']})
        prev = db.get_commit(payload['prev'])
        if not prev or prev['stream_id'] != sid.genesis_cid:
            raise InvalidInput(f'prev commit {payload["prev"]} is not part of stream {sid}')
        if row['family'] == schema.SCHEMA_FAMILY:
            raise InvalidInput(f'schema document {sid} is immutable')
        if row['schema_ref']:
            schema.enforce(payload['data'], self.schema_definition(row['schema_ref']), row['schema_ref'])
        cid = commits.commit_cid(signed)
        seq = db.append_commit(sid.genesis_cid, cid, payload['prev'], signer, signed, payload['data'])
        if seq is None:
            logger.info('duplicate commit %s on %s ignored', cid, sid)
        else:
            logger.info('accepted commit %s on %s sequence=%s', cid, sid, seq)
        return self.load(sid)

    def load(self, id: Union[str, StreamID, CommitID]) -> Dict:
        parsed = parse_id(id)
        if isinstance(parsed, StreamID):
            row = db.get_stream(parsed.genesis_cid)
            if not row:
                raise NotFound(f'stream {parsed} not found')
            return self._state(row, row['tip_cid'])
        row = db.get_stream(parsed.stream.genesis_cid)
        commit = db.get_commit(parsed.cid)
        if not row or not commit or commit['stream_id'] != parsed.stream.genesis_cid:
            raise NotFound(f'commit {parsed} not found')
        return self._state(row, parsed.cid)

    def list_streams(self, limit: int = 100):
        return [str(StreamID(r['stream_id'])) for r in db.list_streams(limit)]

    def schema_definition(self, schema_ref: str) -> Dict:
        ref = parse_commit_id(schema_ref)
        state = self.load(ref)
        if state['metadata'].get('family') != schema.SCHEMA_FAMILY:
            raise InvalidInput(f'{schema_ref} is not a schema document')
        schema.check_definition(state['content'])
        return state['content']

    def _state(self, row, cid: str) -> Dict:
        sid = StreamID(row['stream_id'])
        target = db.get_commit(cid)
        log = db.list_commits(row['stream_id'], up_to_sequence=target['sequence'])
        metadata = {'controllers': [row['controller']]}
        if row['schema_ref']:
            metadata['schema'] = row['schema_ref']
        if row['family']:
            metadata['family'] = row['family']
        tags = json.loads(row['tags'] or '[]')
        if tags:
            metadata['tags'] = tags
        return {
            'stream_id': str(sid),
            'commit_id': str(sid.at(cid)),
            'content': json.loads(target['content_json']),
            'metadata': metadata,
            'log': [str(sid.at(c['cid'])) for c in log],
            'tip': str(sid.at(row['tip_cid'])),
        }
