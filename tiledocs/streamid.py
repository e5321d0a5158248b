"""Stream and commit identifiers.

A stream id addresses the latest accepted version of a document; a commit id
pins one exact version. Both are multibase base58btc strings:

    stream id:  z + b58(type byte + genesis digest)
    commit id:  z + b58(type byte + genesis digest + commit digest)

Digests are the SHA-256 commit CIDs produced by `commits.commit_cid`.
"""
from dataclasses import dataclass
from typing import Union
import base58
from .errors import InvalidInput

TILE_STREAM_TYPE = 0
DIGEST_SIZE = 32


def _digest_bytes(cid: str) -> bytes:
    try:
        raw = bytes.fromhex(cid)
    except (TypeError, ValueError):
        raise InvalidInput(f'invalid commit CID {cid!r}')
    if len(raw) != DIGEST_SIZE:
        raise InvalidInput(f'commit CID must be {DIGEST_SIZE} bytes')
    return raw


@dataclass(frozen=True)
class StreamID:
    genesis_cid: str

    def __post_init__(self):
        _digest_bytes(self.genesis_cid)

    @property
    def genesis(self) -> 'CommitID':
        return CommitID(self, self.genesis_cid)

    def at(self, cid: str) -> 'CommitID':
        return CommitID(self, cid)

    def __str__(self):
        raw = bytes([TILE_STREAM_TYPE]) + _digest_bytes(self.genesis_cid)
        return 'z' + base58.b58encode(raw).decode('ascii')


@dataclass(frozen=True)
class CommitID:
    stream: StreamID
    cid: str

    def __post_init__(self):
        _digest_bytes(self.cid)

    def __str__(self):
        raw = bytes([TILE_STREAM_TYPE]) + _digest_bytes(self.stream.genesis_cid) + _digest_bytes(self.cid)
        return 'z' + base58.b58encode(raw).decode('ascii')


def parse_id(value: Union[str, StreamID, CommitID]) -> Union[StreamID, CommitID]:
    """Parse a stream or commit id from its string form."""
    if isinstance(value, (StreamID, CommitID)):
        return value
    if not isinstance(value, str) or not value.startswith('z'):
        raise InvalidInput(f'not a stream or commit id: {value!r}')
    try:
        raw = base58.b58decode(value[1:])
    except ValueError:
        raise InvalidInput(f'invalid base58 in id {value!r}')
    if not raw or raw[0] != TILE_STREAM_TYPE:
        raise InvalidInput(f'unsupported stream type in id {value!r}')
    body = raw[1:]
    if len(body) == DIGEST_SIZE:
        return StreamID(body.hex())
    if len(body) == 2 * DIGEST_SIZE:
        return CommitID(StreamID(body[:DIGEST_SIZE].hex()), body[DIGEST_SIZE:].hex())
    raise InvalidInput(f'id {value!r} has unexpected length')


def parse_stream_id(value) -> StreamID:
    parsed = parse_id(value)
    if isinstance(parsed, CommitID):
        raise InvalidInput(f'expected a stream id, got commit id {value}')
    return parsed


def parse_commit_id(value) -> CommitID:
    parsed = parse_id(value)
    if isinstance(parsed, StreamID):
        raise InvalidInput(f'expected a commit id, got stream id {value}')
    return parsed
