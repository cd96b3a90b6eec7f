"""Password hashing with Argon2id."""

from argon2 import PasswordHasher
from argon2.exceptions import Argon2Error, InvalidHashError

# Memory: 64 MiB, Time: 3 iterations, Parallelism: 1
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=1,
    hash_len=32,
    salt_len=16,
)


def hash_password(password: str) -> str:
    """Hash a password using Argon2id with a fresh random salt."""
    return ph.hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    """Verify a password against its hash.

    Returns False instead of raising for a wrong password, an empty password,
    or a hash that cannot be parsed, so callers cannot tell these apart.
    """
    if not password or not password_hash:
        return False
    try:
        return ph.verify(password_hash, password)
    except (Argon2Error, InvalidHashError):
        return False


# Verified against when the account does not exist, so that unknown emails
# cost the same as wrong passwords.
DUMMY_PASSWORD_HASH = hash_password("usermgmt-timing-equalisation")
