"""Salted password hashing and constant-time verification.

Credentials are stored as ``"<salt>:<hash>"`` where ``salt`` is 16 random
bytes in hex and ``hash`` is the 64-byte scrypt digest of the password keyed
by the salt string, also hex encoded.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from functools import lru_cache

logger = logging.getLogger(__name__)

SALT_BYTES = 16
KEY_LENGTH = 64
SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1


def derive_key(password: str, salt: str) -> bytes:
    """Return the scrypt digest of ``password`` keyed by ``salt``."""
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt.encode("utf-8"),
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        dklen=KEY_LENGTH,
    )


def hash_password(password: str) -> str:
    salt = secrets.token_hex(SALT_BYTES)
    return f"{salt}:{derive_key(password, salt).hex()}"


def verify_password(password: str, stored: str) -> bool:
    """Check ``password`` against a stored ``salt:hash`` credential.

    Returns ``False`` for malformed credentials and for digests whose length
    differs from the recomputed one; only equal-length values reach the
    constant-time comparison.
    """
    salt, sep, stored_hex = (stored or "").partition(":")
    if not sep or not salt:
        logger.warning("malformed stored credential")
        return False
    try:
        expected = bytes.fromhex(stored_hex)
    except ValueError:
        logger.warning("stored credential is not valid hex")
        return False

    derived = derive_key(password, salt)
    if len(expected) != len(derived):
        return False
    return hmac.compare_digest(expected, derived)


@lru_cache(maxsize=1)
def dummy_credential() -> str:
    """Credential checked against when the account does not exist."""
    return hash_password(secrets.token_hex(SALT_BYTES))
