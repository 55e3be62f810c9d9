import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from clouddrive.auth.passwords import hash_and_store, normalize_password, verify_password
from clouddrive.auth.security import create_access_token
from clouddrive.dependencies import get_store
from clouddrive.errors import ConflictError
from clouddrive.models import User
from clouddrive.models.base import utcnow
from clouddrive.routes.common import http_error
from clouddrive.services.share_service import EMAIL_RE
from clouddrive.store import SqliteStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


class SignupRequest(BaseModel):
    name: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


@router.post("/signup", status_code=201)
def signup(data: SignupRequest, store: SqliteStore = Depends(get_store)):
    name = data.name.strip()
    email = data.email.strip().lower()
    password = normalize_password(data.password)

    if len(name) < 2:
        raise HTTPException(status_code=400, detail="Name must be at least 2 characters")

    if not EMAIL_RE.match(email):
        raise HTTPException(status_code=400, detail="Invalid email")

    if len(password) < 6:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters")

    user = User(
        id=str(uuid.uuid4()),
        name=name,
        email=email,
        password_hash=hash_and_store(password),
        created_at=utcnow(),
    )

    try:
        store.insert_user(user)
    except ConflictError as e:
        raise http_error(e)

    # pending email invites now belong to the account
    bound = store.bind_email_invites(email, user.id)
    if bound:
        logger.info("Bound %d pending invite(s) to new user %s", bound, user.id)

    return {
        "message": "Account created",
        "user": user.to_public_dict(),
        "access_token": create_access_token(user.id),
        "token_type": "bearer",
    }


@router.post("/login")
def login(data: LoginRequest, store: SqliteStore = Depends(get_store)):
    user = store.get_user_by_email(data.email.strip().lower())

    if user is None or not verify_password(data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    return {
        "access_token": create_access_token(user.id),
        "token_type": "bearer",
        "user": user.to_public_dict(),
    }
