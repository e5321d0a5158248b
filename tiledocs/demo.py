"""Walkthrough of the identity and document flow against any store.

Resolves a DID, authenticates two seeded identities, creates and updates a
document as its owner, shows that the second identity cannot update it, and
reads it back without any identity.
"""
import json
import logging
from .client import Client, ContentUpdate, Session
from .did import authenticate
from .errors import OwnershipViolation

logger = logging.getLogger(__name__)

EXAMPLE_DID = 'did:key:z6MkpTHR8VNsBxYAAWHut2Geadd9jSwuBV8xRoAnwWsdvktH'
ZERO_SEED = bytes(32)
COUNTING_SEED = bytes(range(1, 33))


def _show(label, value):
    if isinstance(value, (dict, list)):
        value = json.dumps(value, indent=2, sort_keys=True)
    print(f'{label}:\n{value}')


def run(store) -> dict:
    client = Client(store)
    _show('resolved did', client.resolve(EXAMPLE_DID))

    owner = authenticate(ZERO_SEED)
    _show('authenticated', owner.did)
    _show('resolved did', client.resolve(owner.did))
    session = Session(owner)

    doc_id = client.create_document(session, {'test': '123'})
    _show('document id', str(doc_id))
    doc = client.load_document(doc_id)
    _show('loaded content', doc.content)

    client.update(session, doc, ContentUpdate.merge({'updated': True}))
    updated = client.load_document(doc_id)
    _show('content after update', updated.content)

    other = authenticate(COUNTING_SEED)
    _show('authenticated', other.did)
    _show('resolved did', client.resolve(other.did))
    session = session.with_identity(other)
    second_id = client.create_document(session, {'test': '123'})
    _show('second document id', str(second_id))

    rejected = False
    try:
        client.update(session, updated, ContentUpdate.merge({'updated': True, 'pwned': True}))
    except OwnershipViolation as e:
        rejected = True
        logger.info('update by %s rejected: %s', other.did, e.message)
        print(f"As expected {other.did} could not update a document it does not own")

    after = client.load_document(doc_id)
    _show('content after rejected update', after.content)

    anonymous = Client(store)
    public = anonymous.load_document(doc_id)
    _show('content read without identity', public.content)

    return {
        'owner': owner.did,
        'other': other.did,
        'document': str(doc_id),
        'second_document': str(second_id),
        'content': public.content,
        'rejected': rejected,
        'log': [str(c) for c in public.log],
    }
