"""Signed commits for tile document streams.

A signed commit is a dict:

    {"payload": {...}, "signatures": [{"kid": "did:key:z..#z..", "signature": "<hex>"}]}

The genesis payload carries the header (controllers, schema, family, tags and
an optional random `unique` nonce) and the initial data. Update payloads carry
`id` (genesis CID), `prev` (the CID the writer built on) and a full data
snapshot. The signature covers the canonical JSON of the payload; the commit
CID is the SHA-256 of the canonical JSON of the whole signed commit.
"""
import json
import secrets
from hashlib import sha256
from typing import Dict, List, Optional
from . import crypto_asym
from .did import Identity, public_key_for
from .errors import InvalidInput, NotFound, OwnershipViolation

GENESIS_HEADER_KEYS = {'controllers', 'schema', 'family', 'tags', 'unique'}


def canonical(obj) -> bytes:
    try:
        return json.dumps(obj, sort_keys=True, separators=(',', ':'), ensure_ascii=False).encode('utf-8')
    except (TypeError, ValueError) as e:
        raise InvalidInput(f'content is not JSON serializable: {e}')


def commit_cid(signed: Dict) -> str:
    return sha256(canonical(signed)).hexdigest()


def sign_commit(payload: Dict, identity: Identity) -> Dict:
    sig = identity.sign(canonical(payload))
    return {'payload': payload, 'signatures': [{'kid': identity.kid, 'signature': sig}]}


def create_genesis(identity: Identity, content, schema: Optional[str] = None, family: Optional[str] = None,
                   tags: Optional[List[str]] = None, deterministic: bool = False) -> Dict:
    header = {'controllers': [identity.did]}
    if schema:
        header['schema'] = str(schema)
    if family:
        header['family'] = family
    if tags:
        header['tags'] = list(tags)
    if not deterministic:
        header['unique'] = secrets.token_urlsafe(12)
    return sign_commit({'header': header, 'data': content}, identity)


def create_update(identity: Identity, genesis_cid: str, prev_cid: str, content) -> Dict:
    payload = {'id': genesis_cid, 'prev': prev_cid, 'header': {}, 'data': content}
    return sign_commit(payload, identity)


def is_genesis(signed: Dict) -> bool:
    return 'id' not in signed['payload']


def check_shape(signed: Dict):
    """Reject structurally malformed commits before any signature work."""
    if not isinstance(signed, dict) or not isinstance(signed.get('payload'), dict):
        raise InvalidInput('commit must be an object with a payload')
    sigs = signed.get('signatures')
    if not isinstance(sigs, list) or len(sigs) != 1 or not isinstance(sigs[0], dict):
        raise InvalidInput('commit must carry exactly one signature')
    if not isinstance(sigs[0].get('kid'), str) or not isinstance(sigs[0].get('signature'), str):
        raise InvalidInput('signature entry needs kid and signature strings')
    payload = signed['payload']
    if 'data' not in payload:
        raise InvalidInput('commit payload has no data')
    header = payload.get('header')
    if not isinstance(header, dict):
        raise InvalidInput('commit payload has no header')
    if is_genesis(signed):
        extra = set(header) - GENESIS_HEADER_KEYS
        if extra:
            raise InvalidInput(f'unknown genesis header fields: {sorted(extra)}')
        controllers = header.get('controllers')
        if not isinstance(controllers, list) or len(controllers) != 1 or not isinstance(controllers[0], str):
            raise InvalidInput('genesis must name exactly one controller')
        for key in ('schema', 'family', 'unique'):
            if key in header and not isinstance(header[key], str):
                raise InvalidInput(f'genesis {key} must be a string')
        tags = header.get('tags', [])
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise InvalidInput('genesis tags must be a list of strings')
    else:
        if header:
            raise InvalidInput('update commits cannot change the header')
        if not isinstance(payload.get('id'), str) or not isinstance(payload.get('prev'), str):
            raise InvalidInput('update commit needs id and prev')
    canonical(signed)


def signer_of(signed: Dict) -> str:
    return signed['signatures'][0]['kid'].split('#', 1)[0]


def verify_commit(signed: Dict) -> str:
    """Check the commit signature against the signer's did:key; return the signer DID."""
    check_shape(signed)
    signer = signer_of(signed)
    try:
        pub = public_key_for(signer)
    except NotFound:
        raise InvalidInput(f'signer {signer} is not a did:key identity')
    sig = signed['signatures'][0]['signature']
    if not crypto_asym.verify_with_public_key(canonical(signed['payload']), sig, pub):
        raise OwnershipViolation('commit signature does not verify', extra={'signer': signer})
    return signer
