import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
import copy
import pytest
from tiledocs import commits
from tiledocs.errors import InvalidInput, OwnershipViolation
from tiledocs.streamid import CommitID, StreamID, parse_commit_id, parse_id, parse_stream_id


def test_genesis_verifies_and_names_signer(owner):
    genesis = commits.create_genesis(owner, {'test': '123'})
    assert commits.is_genesis(genesis)
    assert commits.verify_commit(genesis) == owner.did
    assert genesis['payload']['header']['controllers'] == [owner.did]


def test_tampered_data_fails_signature(owner):
    genesis = commits.create_genesis(owner, {'test': '123'})
    forged = copy.deepcopy(genesis)
    forged['payload']['data']['test'] = '456'
    with pytest.raises(OwnershipViolation):
        commits.verify_commit(forged)


def test_claimed_signer_must_match_key(owner, other):
    signed = commits.create_update(other, 'aa' * 32, 'aa' * 32, {'x': 1})
    signed['signatures'][0]['kid'] = owner.kid
    with pytest.raises(OwnershipViolation):
        commits.verify_commit(signed)


def test_deterministic_genesis_has_stable_cid(owner):
    a = commits.create_genesis(owner, {'a': 1}, family='profile', tags=['x'], deterministic=True)
    b = commits.create_genesis(owner, {'a': 1}, family='profile', tags=['x'], deterministic=True)
    assert 'unique' not in a['payload']['header']
    assert commits.commit_cid(a) == commits.commit_cid(b)
    c = commits.create_genesis(owner, {'a': 1})
    d = commits.create_genesis(owner, {'a': 1})
    assert commits.commit_cid(c) != commits.commit_cid(d)


def test_update_cannot_carry_header(owner):
    signed = commits.create_update(owner, 'aa' * 32, 'aa' * 32, {'x': 1})
    signed['payload']['header'] = {'controllers': ['did:key:zSomeoneElse']}
    with pytest.raises(InvalidInput):
        commits.check_shape(signed)


@pytest.mark.parametrize('signed', [
    None,
    {},
    {'payload': {'data': 1, 'header': {}}},
    {'payload': {'data': 1, 'header': {}}, 'signatures': []},
    {'payload': {'header': {'controllers': ['did:key:z']}}, 'signatures': [{'kid': 'k', 'signature': 's'}]},
    {'payload': {'data': 1, 'header': {'controllers': []}}, 'signatures': [{'kid': 'k', 'signature': 's'}]},
    {'payload': {'data': 1, 'header': {'controllers': ['a'], 'owner': 'b'}}, 'signatures': [{'kid': 'k', 'signature': 's'}]},
    {'payload': {'id': 'x', 'data': 1, 'header': {}}, 'signatures': [{'kid': 'k', 'signature': 's'}]},
    {'payload': {'data': 1, 'header': {'controllers': ['a'], 'family': ['x']}}, 'signatures': [{'kid': 'k', 'signature': 's'}]},
    {'payload': {'data': 1, 'header': {'controllers': ['a'], 'schema': 7}}, 'signatures': [{'kid': 'k', 'signature': 's'}]},
    {'payload': {'data': 1, 'header': {'controllers': ['a'], 'tags': 'x'}}, 'signatures': [{'kid': 'k', 'signature': 's'}]},
    {'payload': {'data': 1, 'header': {'controllers': ['a'], 'tags': ['x', 2]}}, 'signatures': [{'kid': 'k', 'signature': 's'}]},
])
def test_malformed_commits_rejected(signed):
    with pytest.raises(InvalidInput):
        commits.check_shape(signed)


def test_content_must_be_json(owner):
    with pytest.raises(InvalidInput):
        commits.create_genesis(owner, {'when': object()})


def test_stream_and_commit_ids_parse_back():
    sid = StreamID('ab' * 32)
    cid = sid.at('cd' * 32)
    assert parse_id(str(sid)) == sid
    assert parse_id(str(cid)) == cid
    assert parse_stream_id(str(sid)) == sid
    assert parse_commit_id(str(sid.genesis)) == CommitID(sid, 'ab' * 32)
    assert str(sid) != str(sid.genesis)


@pytest.mark.parametrize('value', ['', 'abc', 'z0OIl', 'z111', None, 42])
def test_bad_ids_are_invalid_input(value):
    with pytest.raises(InvalidInput):
        parse_id(value)


def test_id_kind_is_enforced():
    sid = StreamID('ab' * 32)
    with pytest.raises(InvalidInput):
        parse_stream_id(str(sid.genesis))
    with pytest.raises(InvalidInput):
        parse_commit_id(str(sid))
