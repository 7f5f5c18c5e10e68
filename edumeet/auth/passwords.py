import hashlib
import re
import secrets

from passlib.context import CryptContext

from edumeet.core import config

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)

MIN_PASSWORD_LENGTH = 6
# bcrypt ignores everything past 72 bytes
MAX_PASSWORD_LENGTH = 72
_STRONG_PASSWORD = re.compile(r'^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)')


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def validate_password_strength(password: str) -> str:
    """Raise ``ValueError`` unless the password meets the account policy."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters long.')
    if len(password.encode('utf-8')) > MAX_PASSWORD_LENGTH:
        raise ValueError(f'Password must be at most {MAX_PASSWORD_LENGTH} bytes long.')
    if not _STRONG_PASSWORD.match(password):
        raise ValueError('Password must contain at least one uppercase letter, one lowercase letter, and one number.')
    return password


def generate_setup_token() -> tuple[str, str]:
    """Return ``(token, digest)``; only the digest is persisted."""
    token = secrets.token_hex(32)
    return token, hash_setup_token(token)


def hash_setup_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()
