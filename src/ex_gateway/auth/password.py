"""Password hashing with the ``bcrypt`` library directly (>=4.0)."""

import bcrypt

# bcrypt ignores everything past 72 bytes; newer releases raise instead
_MAX_BCRYPT_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_MAX_BCRYPT_BYTES]


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False
