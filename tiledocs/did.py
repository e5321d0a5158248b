"""did:key identities and resolution.

A did:key identifier embeds the Ed25519 public key itself
(multibase base58btc over the ed25519-pub multicodec), so resolution is a pure
decoding step: any well-formed identifier resolves, whether or not its owner
ever authenticated anywhere.
"""
import logging
from dataclasses import dataclass, field
import base58
from nacl.exceptions import CryptoError
from nacl.signing import SigningKey
from . import crypto_asym
from .errors import InvalidInput, NotFound

logger = logging.getLogger(__name__)

DID_KEY_PREFIX = 'did:key:'
# multicodec varints
ED25519_PUB = bytes([0xED, 0x01])
X25519_PUB = bytes([0xEC, 0x01])


@dataclass(frozen=True)
class Identity:
    """An authenticated did:key identity. Holds the private signing key."""
    did: str
    public_key: bytes
    signing_key: SigningKey = field(repr=False, compare=False)

    @property
    def fingerprint(self) -> str:
        return self.did[len(DID_KEY_PREFIX):]

    @property
    def kid(self) -> str:
        return f'{self.did}#{self.fingerprint}'

    def sign(self, data: bytes) -> str:
        return crypto_asym.sign_bytes(self.signing_key, data)


def _multibase(prefix: bytes, key: bytes) -> str:
    return 'z' + base58.b58encode(prefix + key).decode('ascii')


def did_from_public_key(pub: bytes) -> str:
    if len(pub) != crypto_asym.PUBLIC_KEY_SIZE:
        raise InvalidInput(f'Ed25519 public key must be {crypto_asym.PUBLIC_KEY_SIZE} bytes')
    return DID_KEY_PREFIX + _multibase(ED25519_PUB, pub)


def authenticate(seed: bytes) -> Identity:
    """Derive the identity for a 32-byte seed. Same seed, same DID."""
    try:
        sk = crypto_asym.signing_key_from_seed(seed)
    except (TypeError, ValueError) as e:
        raise InvalidInput(str(e))
    pub = crypto_asym.get_public_key_bytes(sk)
    identity = Identity(did=did_from_public_key(pub), public_key=pub, signing_key=sk)
    logger.debug('authenticated %s', identity.did)
    return identity


def generate_identity() -> Identity:
    return authenticate(crypto_asym.random_seed())


def _decode_fingerprint(fp: str) -> bytes:
    if not fp.startswith('z'):
        raise InvalidInput('only multibase base58btc (z...) keys are supported')
    try:
        raw = base58.b58decode(fp[1:])
    except ValueError:
        raise InvalidInput(f'invalid base58 in {fp!r}')
    if not raw.startswith(ED25519_PUB):
        raise InvalidInput('multicodec prefix is not ed25519-pub')
    pub = raw[len(ED25519_PUB):]
    if len(pub) != crypto_asym.PUBLIC_KEY_SIZE:
        raise InvalidInput(f'decoded key is {len(pub)} bytes, expected {crypto_asym.PUBLIC_KEY_SIZE}')
    return pub


def _split_identifier(identifier: str) -> str:
    """Return the multibase fingerprint of a did:key or bare key identifier."""
    if not isinstance(identifier, str) or not identifier:
        raise InvalidInput('identifier must be a non-empty string')
    # drop a key fragment such as did:key:z6Mk...#z6Mk...
    identifier = identifier.split('#', 1)[0]
    if identifier.startswith(DID_KEY_PREFIX):
        return identifier[len(DID_KEY_PREFIX):]
    if identifier.startswith('did:'):
        parts = identifier.split(':')
        if len(parts) < 3 or not parts[1] or not parts[2]:
            raise InvalidInput(f'malformed DID {identifier!r}')
        raise NotFound(f'no resolver registered for DID method {parts[1]!r}', extra={'did': identifier})
    return identifier


def public_key_for(identifier: str) -> bytes:
    return _decode_fingerprint(_split_identifier(identifier))


def resolve(identifier: str) -> dict:
    """Resolve a did:key (or its bare multibase key) to a DID resolution result."""
    fp = _split_identifier(identifier)
    pub = _decode_fingerprint(fp)
    did = DID_KEY_PREFIX + fp
    kid = f'{did}#{fp}'
    try:
        x_pub = crypto_asym.x25519_public_key(pub)
    except CryptoError:
        raise InvalidInput(f'{did} does not encode a valid Ed25519 point')
    x_fp = _multibase(X25519_PUB, x_pub)
    doc = {
        'id': did,
        'verificationMethod': [{
            'id': kid,
            'type': 'Ed25519VerificationKey2018',
            'controller': did,
            'publicKeyBase58': base58.b58encode(pub).decode('ascii'),
        }],
        'authentication': [kid],
        'assertionMethod': [kid],
        'capabilityDelegation': [kid],
        'capabilityInvocation': [kid],
        'keyAgreement': [{
            'id': f'{did}#{x_fp}',
            'type': 'X25519KeyAgreementKey2019',
            'controller': did,
            'publicKeyBase58': base58.b58encode(x_pub).decode('ascii'),
        }],
    }
    return {
        'didResolutionMetadata': {'contentType': 'application/did+json'},
        'didDocument': doc,
        'didDocumentMetadata': {},
    }
