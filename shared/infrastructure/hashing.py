"""
Keyed hashing utilities

One-time codes and guest access tokens are never stored in plain text.
Both are reduced to an HMAC-SHA256 hex digest keyed with
``settings.GUEST_ACCESS_SECRET`` and compared in constant time.
"""

import hashlib
import hmac
import secrets

from django.conf import settings


def get_hashing_key() -> bytes:
    key = getattr(settings, 'GUEST_ACCESS_SECRET', None)
    if not key:
        raise ValueError("GUEST_ACCESS_SECRET not configured in settings.")
    return key.encode() if isinstance(key, str) else key


def keyed_digest(value: str) -> str:
    """Return the hex HMAC-SHA256 digest of ``value``."""
    return hmac.new(get_hashing_key(), value.encode(), hashlib.sha256).hexdigest()


def digests_match(value: str, expected_digest: str) -> bool:
    return hmac.compare_digest(keyed_digest(value), expected_digest)


def generate_numeric_code(length: int = 6) -> str:
    """Cryptographically random, zero-padded numeric code."""
    return str(secrets.randbelow(10 ** length)).zfill(length)


def generate_token(nbytes: int = 32) -> str:
    return secrets.token_hex(nbytes)
