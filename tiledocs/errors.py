"""Error kinds raised by the identity, store and client layers.

Every error carries a stable `code` (used on the wire by the node API) and the
HTTP `status` the node answers with.
"""


class TileDocsError(Exception):
    code = 'error'
    status = 500

    def __init__(self, message, extra=None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_dict(self) -> dict:
        d = {'error': self.code, 'detail': self.message}
        if self.extra:
            d['extra'] = self.extra
        return d


class InvalidInput(TileDocsError):
    """Malformed seed, identifier or commit."""
    code = 'invalid_input'
    status = 400


class Unauthenticated(TileDocsError):
    """Mutating call issued without an identity."""
    code = 'unauthenticated'
    status = 401


class OwnershipViolation(TileDocsError):
    """Commit not signed by the document owner."""
    code = 'ownership_violation'
    status = 403


class NotFound(TileDocsError):
    code = 'not_found'
    status = 404


class SchemaViolation(TileDocsError):
    code = 'schema_violation'
    status = 422


class TransportFailure(TileDocsError):
    """The remote node could not be reached or failed internally."""
    code = 'transport_failure'
    status = 502


ERRORS_BY_CODE = {cls.code: cls for cls in (
    InvalidInput, Unauthenticated, OwnershipViolation, NotFound, SchemaViolation, TransportFailure,
)}


def error_from_dict(d: dict, status: int = None) -> TileDocsError:
    """Rebuild an error from the node's JSON error body."""
    cls = ERRORS_BY_CODE.get((d or {}).get('error'))
    detail = (d or {}).get('detail') or 'unknown error'
    if cls is None:
        return TransportFailure(f'node returned {status}: {detail}', extra={'status': status})
    return cls(detail, extra=(d or {}).get('extra'))
