import hashlib
from typing import Optional

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def normalize_password(p: str) -> str:
    p = (p or "").strip()
    b = p.encode("utf-8")

    # bcrypt limit is 72 bytes
    if len(b) <= 72:
        return p

    # if longer than 72 bytes, convert to fixed length
    return hashlib.sha256(b).hexdigest()


def hash_and_store(password: Optional[str]) -> Optional[str]:
    """Hash a user or share password before it is persisted.

    Empty input means "no password" and yields ``None``.
    """
    password = normalize_password(password or "")
    if not password:
        return None
    return pwd_context.hash(password)


def verify_password(password: Optional[str], password_hash: Optional[str]) -> bool:
    if not password or not password_hash:
        return False
    return pwd_context.verify(normalize_password(password), password_hash)
