"""Hash and verify passwords with bcrypt (no passlib)."""
import bcrypt

# bcrypt ignores everything past 72 bytes; truncate explicitly so newer releases don't raise
BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt()).decode("ascii")


def verify_password(plain: str, hashed: str) -> bool:
    """False for a wrong password and for a stored value that is not a bcrypt hash."""
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("ascii"))
    except ValueError:
        return False
