"""
Credential hashing utilities.

All credential hashing in the tea kernel goes through this module.  bcrypt
output has a fixed shape (``$2b$<cost>$`` followed by 53 characters of
salt and digest, 60 in total), which is what lets the account service tell
a damaged stored hash from a merely wrong password.
"""

import re

import bcrypt

BCRYPT_HASH_LENGTH = 60

_BCRYPT_PATTERN = re.compile(r"^\$2[abxy]\$\d{2}\$[./A-Za-z0-9]{53}$")

# bcrypt ignores everything past 72 bytes
_MAX_SECRET_BYTES = 72


def _encode(secret: str) -> bytes:
    return secret.encode("utf-8")[:_MAX_SECRET_BYTES]


def hash_secret(secret: str, rounds: int = 10) -> str:
    """
    Hash a credential with a fresh salt.

    Args:
        secret: Plain-text credential.
        rounds: bcrypt cost factor (4..31).

    Returns:
        60-character bcrypt hash string.
    """
    return bcrypt.hashpw(_encode(secret), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_secret(secret: str, digest: str) -> bool:
    """
    Compare a credential against a stored hash.

    A stored value that is not a bcrypt hash never matches.
    """
    if not is_well_formed_hash(digest):
        return False
    return bcrypt.checkpw(_encode(secret), digest.encode("ascii"))


def is_well_formed_hash(digest: str | None) -> bool:
    """True iff ``digest`` has the fixed-width bcrypt shape."""
    if not digest or len(digest) != BCRYPT_HASH_LENGTH:
        return False
    return _BCRYPT_PATTERN.match(digest) is not None
