"""Share token codec.

A token is three base64url segments joined by dots::

    <header>.<payload>.<tag>

The header names the signing algorithm, the payload is the section list as
compact JSON and the tag is an HMAC over ``<header>.<payload>``. Tokens are
signed, not encrypted: anyone can read the sections, nobody without the
secret can produce a token that verifies.
"""
import base64
import binascii
import hashlib
import hmac
import json
import logging

from stream_timer.config import ConfigError
from stream_timer.schedule import Section, ValidationError, parse_sections

log = logging.getLogger(__name__)

DELIMITER = '.'
DEFAULT_ALGORITHM = 'HS256'

# Header "alg" value -> hash constructor. New algorithms get added here.
ALGORITHMS = {
    'HS256': hashlib.sha256,
}


# --- base64url helpers ---

def b64url_encode(data):
    if isinstance(data, str):
        data = data.encode('utf-8')
    return base64.urlsafe_b64encode(data).rstrip(b'=').decode('ascii')


def b64url_decode(segment):
    padded = segment + '=' * (-len(segment) % 4)
    return base64.urlsafe_b64decode(padded.encode('ascii'))


def _dump(obj):
    return json.dumps(obj, separators=(',', ':'), ensure_ascii=False)


def _sign(signing_input, secret, algorithm):
    digest = hmac.new(secret.encode('utf-8'), signing_input.encode('utf-8'), ALGORITHMS[algorithm]).digest()
    return b64url_encode(digest)


# --- Public API ---

def encode(sections, secret, algorithm=DEFAULT_ALGORITHM):
    """Serialises and signs a section list. Deterministic for the same input and secret."""
    if not secret:
        raise ConfigError("Token secret not set")
    if algorithm not in ALGORITHMS:
        raise ValueError(f"Unsupported signing algorithm: {algorithm}")

    records = [s.to_dict() if isinstance(s, Section) else Section.from_dict(s).to_dict() for s in sections]
    header = b64url_encode(_dump({'alg': algorithm, 'typ': 'JWT'}))
    payload = b64url_encode(_dump({'sections': records}))
    signing_input = f"{header}{DELIMITER}{payload}"
    token = f"{signing_input}{DELIMITER}{_sign(signing_input, secret, algorithm)}"
    log.info(f"Encoded share token for {len(records)} section(s)")
    return token


def decode(token, secret):
    """Verifies a token and returns its sections, or None.

    Never raises: a malformed token, an unknown algorithm, a tag mismatch and
    a payload that is not a list of valid sections all give None. A verified
    token carrying no sections gives an empty list.
    """
    if not secret or not isinstance(token, str):
        log.debug("Token rejected: no secret configured or token missing")
        return None

    segments = token.split(DELIMITER)
    if len(segments) != 3:
        log.debug(f"Token rejected: expected 3 segments, got {len(segments)}")
        return None
    header_b64, payload_b64, tag = segments

    try:
        header = json.loads(b64url_decode(header_b64).decode('utf-8'))
    except (binascii.Error, ValueError):
        log.debug("Token rejected: unreadable header")
        return None
    algorithm = header.get('alg') if isinstance(header, dict) else None
    if not isinstance(algorithm, str) or algorithm not in ALGORITHMS:
        log.debug(f"Token rejected: unsupported algorithm {algorithm!r}")
        return None

    expected = _sign(f"{header_b64}{DELIMITER}{payload_b64}", secret, algorithm)
    if not hmac.compare_digest(expected.encode('ascii'), tag.encode('utf-8')):
        log.debug("Token rejected: integrity tag mismatch")
        return None

    try:
        payload = json.loads(b64url_decode(payload_b64).decode('utf-8'))
        if not isinstance(payload, dict):
            raise ValidationError("Payload must be an object.")
        return parse_sections(payload.get('sections'))
    except (binascii.Error, ValueError):
        # ValidationError and JSONDecodeError are both ValueErrors
        log.debug("Token rejected: payload is not a valid section list", exc_info=True)
        return None


class TokenCodec:
    """Binds encode/decode to one explicitly injected secret."""

    def __init__(self, secret):
        self.secret = secret

    @property
    def configured(self):
        return bool(self.secret)

    def encode(self, sections):
        return encode(sections, self.secret)

    def decode(self, token):
        return decode(token, self.secret)
