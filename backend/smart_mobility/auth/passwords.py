"""
Smart Mobility Backend - Password Hashing
==========================================

argon2id via argon2-cffi. Hashes are PHC strings (`$argon2id$v=19$...`) and
carry their own parameters, so raising the cost later keeps old hashes
verifiable; `needs_rehash` tells the login flow when to upgrade one.
"""

import logging

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

logger = logging.getLogger(__name__)

_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a plaintext password; the result is safe to store."""
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """
    True when `password` matches `password_hash`.

    A malformed stored hash counts as a mismatch and is logged, so a corrupt
    row cannot be used to sign in.
    """
    try:
        return _hasher.verify(password_hash, password)
    except VerificationError:
        return False
    except InvalidHashError:
        logger.warning("Stored password hash is not a valid argon2 hash")
        return False


def needs_rehash(password_hash: str) -> bool:
    return _hasher.check_needs_rehash(password_hash)
