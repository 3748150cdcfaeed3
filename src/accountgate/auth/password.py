"""Password hashing utilities.

Learn: Uses bcrypt for password hashing. bcrypt generates a random salt
per hash and embeds it in the result, so the salt we store alongside the
Account is informational. Verification only needs the hash itself.
The work factor is configurable (default 10 rounds); each +1 doubles the
cost of an offline brute-force attempt.
"""

import bcrypt

DEFAULT_ROUNDS = 10


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> tuple[str, str]:
    """Hash a password with bcrypt.

    Returns (hash, salt). Passwords are truncated to 72 bytes
    (bcrypt's limit).
    """
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(pw_bytes, salt)
    return hashed.decode("utf-8"), salt.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash. Never raises."""
    try:
        pw_bytes = password.encode("utf-8")[:72]
        hash_bytes = password_hash.encode("utf-8")
        return bcrypt.checkpw(pw_bytes, hash_bytes)
    except (ValueError, TypeError, AttributeError):
        return False
