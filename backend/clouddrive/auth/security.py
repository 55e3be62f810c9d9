from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from clouddrive.auth.jwt_config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from clouddrive.dependencies import get_store
from clouddrive.models import User
from clouddrive.store import SqliteStore

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    payload = {"sub": user_id, "exp": expire}
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def decode_user_id(token: str) -> str:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )
    return user_id


def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    store: SqliteStore = Depends(get_store),
) -> User:
    if creds is None or not creds.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing token",
        )

    user = store.get_user(decode_user_id(creds.credentials))
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token or user not found",
        )
    return user


def get_optional_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    store: SqliteStore = Depends(get_store),
) -> Optional[User]:
    """Public link routes work without a token; a bad token counts as anonymous."""
    if creds is None or not creds.credentials:
        return None

    try:
        user_id = decode_user_id(creds.credentials)
    except HTTPException:
        return None

    user = store.get_user(user_id)
    if user is None or not user.is_active:
        return None
    return user
