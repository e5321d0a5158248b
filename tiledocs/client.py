"""Document store client.

The client holds no identity. Every mutating call takes a `Session`, an
immutable value carrying at most one authenticated identity; switching
identity means building another session. Reads never need one.

    client = Client(DocumentStore())
    session = Session(authenticate(seed))
    sid = client.create_document(session, {'test': '123'})
    doc = client.load_document(sid)
    doc = client.update(session, doc, ContentUpdate.merge({'updated': True}))
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union
from . import commits
from .schema import SCHEMA_FAMILY, check_definition, validate as validate_content
from .did import Identity, resolve
from .errors import InvalidInput, Unauthenticated
from .streamid import CommitID, StreamID, parse_commit_id, parse_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    identity: Optional[Identity] = None

    @classmethod
    def anonymous(cls) -> 'Session':
        return cls()

    def with_identity(self, identity: Identity) -> 'Session':
        return Session(identity)

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    def require_identity(self) -> Identity:
        if self.identity is None:
            raise Unauthenticated('this operation needs an authenticated identity')
        return self.identity


@dataclass(frozen=True)
class ContentUpdate:
    """An explicit change to a document's content.

    `replace` swaps the content wholesale; `merge` shallow-merges the given
    fields into the current object content (fields in the update win).
    """
    content: Any
    mode: str = 'replace'

    REPLACE = 'replace'
    MERGE = 'merge'

    @classmethod
    def replace(cls, content) -> 'ContentUpdate':
        return cls(content, cls.REPLACE)

    @classmethod
    def merge(cls, fields: dict) -> 'ContentUpdate':
        return cls(fields, cls.MERGE)

    def apply(self, current):
        if self.mode == self.REPLACE:
            return self.content
        if self.mode == self.MERGE:
            if not isinstance(current, dict) or not isinstance(self.content, dict):
                raise InvalidInput('merge updates need object content on both sides')
            merged = dict(current)
            merged.update(self.content)
            return merged
        raise InvalidInput(f'unknown update mode {self.mode!r}')


@dataclass(frozen=True)
class TileDocument:
    """Snapshot of a stream as loaded from a store."""
    id: StreamID
    commit_id: CommitID
    content: Any
    metadata: Dict = field(default_factory=dict)
    log: Tuple[CommitID, ...] = ()
    tip: Optional[CommitID] = None

    @classmethod
    def from_state(cls, state: Dict) -> 'TileDocument':
        sid = parse_id(state['stream_id'])
        return cls(
            id=sid,
            commit_id=parse_commit_id(state['commit_id']),
            content=state['content'],
            metadata=state.get('metadata') or {},
            log=tuple(parse_commit_id(c) for c in state.get('log', [])),
            tip=parse_commit_id(state['tip']) if state.get('tip') else None,
        )

    @property
    def controllers(self) -> List[str]:
        return list(self.metadata.get('controllers', []))

    @property
    def owner(self) -> Optional[str]:
        controllers = self.controllers
        return controllers[0] if controllers else None

    @property
    def schema(self) -> Optional[str]:
        return self.metadata.get('schema')

    @property
    def is_pinned(self) -> bool:
        """True when this snapshot was loaded at a commit older than the stream tip."""
        return self.tip is not None and self.tip != self.commit_id


class Client:
    def __init__(self, store):
        self.store = store

    def resolve(self, identifier: str) -> dict:
        return resolve(identifier)

    def create_document(self, session: Session, content, schema: Union[str, CommitID, None] = None,
                        family: Optional[str] = None, tags: Optional[List[str]] = None,
                        deterministic: bool = False) -> StreamID:
        identity = session.require_identity()
        schema_ref = str(parse_commit_id(schema)) if schema is not None else None
        genesis = commits.create_genesis(identity, content, schema=schema_ref, family=family,
                                         tags=tags, deterministic=deterministic)
        state = self.store.create(genesis)
        logger.info('%s created %s', identity.did, state['stream_id'])
        return parse_id(state['stream_id'])

    def load_document(self, id: Union[str, StreamID, CommitID]) -> TileDocument:
        return TileDocument.from_state(self.store.load(id))

    def update(self, session: Session, doc: TileDocument, change) -> TileDocument:
        identity = session.require_identity()
        if not isinstance(change, ContentUpdate):
            change = ContentUpdate.replace(change)
        content = change.apply(doc.content)
        signed = commits.create_update(identity, doc.id.genesis_cid, doc.commit_id.cid, content)
        state = self.store.apply(doc.id, signed)
        return TileDocument.from_state(state)

    def commit_log(self, id: Union[str, StreamID, CommitID]) -> List[CommitID]:
        return list(self.load_document(id).log)

    def create_schema(self, session: Session, definition: dict) -> CommitID:
        check_definition(definition)
        sid = self.create_document(session, definition, family=SCHEMA_FAMILY)
        return sid.genesis

    def validate(self, content, schema_ref: Union[str, CommitID]) -> bool:
        definition = self.store.schema_definition(str(parse_commit_id(schema_ref)))
        return validate_content(content, definition)
