import logging
import re
import secrets
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

from clouddrive.auth.passwords import hash_and_store
from clouddrive.config import PUBLIC_LINK_BYTES
from clouddrive.errors import ConflictError, DenyReason, ForbiddenError, NotFoundError, ValidationError
from clouddrive.models import ItemRef, Permission, Share
from clouddrive.models.base import as_utc, utcnow
from clouddrive.services.item_service import resolve_item
from clouddrive.store import SqliteStore

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def generate_public_link() -> str:
    return secrets.token_urlsafe(PUBLIC_LINK_BYTES)


class ShareOptions(BaseModel):
    shared_with_id: Optional[str] = None
    shared_with_email: Optional[str] = None
    is_public: bool = False
    permission: Permission = Permission.VIEW
    password: Optional[str] = None
    expires_at: Optional[datetime] = None
    allow_download: bool = True
    allow_edit: bool = False
    notify_on_access: bool = False

    @field_validator("shared_with_email")
    @classmethod
    def _email(cls, value):
        if value is None:
            return None
        value = value.strip().lower()
        if not value:
            return None
        if not EMAIL_RE.match(value):
            raise ValueError("shared_with_email must be a valid email address")
        return value

    @field_validator("expires_at")
    @classmethod
    def _expiry(cls, value):
        return as_utc(value)


class ShareChanges(BaseModel):
    """Owner edits; fields left unset are not touched."""

    permission: Optional[Permission] = None
    password: Optional[str] = None
    clear_password: bool = False
    expires_at: Optional[datetime] = None
    clear_expiry: bool = False
    allow_download: Optional[bool] = None
    allow_edit: Optional[bool] = None
    notify_on_access: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("expires_at")
    @classmethod
    def _expiry(cls, value):
        return as_utc(value)


def create_share(store: SqliteStore, owner_id: str, ref: ItemRef, options: ShareOptions) -> Share:
    item = resolve_item(store, ref)

    if item.owner_id != owner_id:
        raise ForbiddenError("Only the owner can share this item")

    if item.is_deleted:
        raise NotFoundError("Item is in trash", reason=DenyReason.ITEM_NOT_FOUND)

    if not (options.shared_with_id or options.shared_with_email or options.is_public):
        raise ValidationError("A share needs a user, an email or a public link")

    if options.expires_at is not None and options.expires_at <= utcnow():
        raise ValidationError("expires_at must be in the future")

    shared_with_id = options.shared_with_id
    if options.shared_with_email:
        # invite to an address that already has an account goes to the account
        existing = store.get_user_by_email(options.shared_with_email)
        if existing is not None:
            if shared_with_id is not None and shared_with_id != existing.id:
                raise ValidationError("shared_with_email belongs to a different user than shared_with_id")
            shared_with_id = existing.id

    if shared_with_id is not None:
        recipient = store.get_user(shared_with_id)
        if recipient is None:
            raise NotFoundError("Recipient not found")
        if recipient.id == owner_id:
            raise ValidationError("Cannot share an item with yourself")

        if any(s.can_access() for s in store.find_shares(ref, recipient.id)):
            raise ConflictError("Item already shared with this user")

    now = utcnow()
    share = Share(
        id=str(uuid.uuid4()),
        owner_id=owner_id,
        item_id=ref.id,
        item_type=ref.type,
        shared_with_id=shared_with_id,
        shared_with_email=options.shared_with_email,
        is_public=options.is_public,
        public_link=generate_public_link() if options.is_public else None,
        permission=options.permission,
        password=hash_and_store(options.password),
        expires_at=options.expires_at,
        allow_download=options.allow_download,
        allow_edit=options.allow_edit,
        notify_on_access=options.notify_on_access,
        created_at=now,
        updated_at=now,
    )
    store.insert_share(share)

    logger.info(
        "Share %s created by %s for %s %s (permission=%s, public=%s)",
        share.id, owner_id, ref.type.value, ref.id, share.permission.value, share.is_public,
    )
    return share


def get_owned_share(store: SqliteStore, owner_id: str, share_id: str) -> Share:
    share = store.get_share(share_id)
    if share is None or share.owner_id != owner_id:
        raise NotFoundError("Share not found or you are not the owner")
    return share


def update_share(store: SqliteStore, owner_id: str, share_id: str, changes: ShareChanges) -> Share:
    get_owned_share(store, owner_id, share_id)

    updates = {}
    if changes.permission is not None:
        updates["permission"] = changes.permission
    if changes.clear_password:
        updates["password"] = None
    elif changes.password:
        updates["password"] = hash_and_store(changes.password)
    if changes.clear_expiry:
        updates["expires_at"] = None
    elif changes.expires_at is not None:
        if changes.expires_at <= utcnow():
            raise ValidationError("expires_at must be in the future")
        updates["expires_at"] = changes.expires_at
    for flag in ("allow_download", "allow_edit", "notify_on_access", "is_active"):
        value = getattr(changes, flag)
        if value is not None:
            updates[flag] = value

    store.update_share(share_id, updates)
    return store.get_share(share_id)


def deactivate_share(store: SqliteStore, owner_id: str, share_id: str) -> Share:
    get_owned_share(store, owner_id, share_id)
    store.update_share(share_id, {"is_active": False})
    logger.info("Share %s revoked by %s", share_id, owner_id)
    return store.get_share(share_id)


def extend_share(
    store: SqliteStore,
    owner_id: str,
    share_id: str,
    new_expires_at: Optional[datetime] = None,
) -> Share:
    """
    Owner can:
    - move the expiry to a new, future time
    - reactivate a revoked share (``new_expires_at=None`` keeps the current expiry)
    An expired share only comes back through a new, future expiry.
    """
    share = get_owned_share(store, owner_id, share_id)
    new_expires_at = as_utc(new_expires_at)

    if new_expires_at is not None and new_expires_at <= utcnow():
        raise ValidationError("expires_at must be in the future")

    if new_expires_at is None and share.is_expired():
        raise ValidationError("Share has expired, set a new expiry to reactivate it")

    store.update_share(share_id, {"is_active": True, "expires_at": new_expires_at or share.expires_at})
    return store.get_share(share_id)


def regenerate_public_link(store: SqliteStore, owner_id: str, share_id: str) -> Share:
    share = get_owned_share(store, owner_id, share_id)
    if not share.is_public:
        raise ValidationError("Only public shares have a link to regenerate")
    store.update_share(share_id, {"public_link": generate_public_link()})
    logger.info("Public link regenerated for share %s", share_id)
    return store.get_share(share_id)


def delete_share(store: SqliteStore, owner_id: str, share_id: str) -> None:
    get_owned_share(store, owner_id, share_id)
    store.delete_share(share_id)
    logger.info("Share %s deleted by %s", share_id, owner_id)


def list_item_shares(store: SqliteStore, owner_id: str, ref: ItemRef) -> List[Share]:
    item = resolve_item(store, ref)
    if item.owner_id != owner_id:
        raise NotFoundError(f"{ref.type.value.capitalize()} not found")
    return store.list_shares_for_item(ref)


def list_my_shares(store: SqliteStore, owner_id: str) -> List[Share]:
    return store.list_shares_by_owner(owner_id)


def list_shared_with_me(store: SqliteStore, user_id: str) -> List[Share]:
    """Grants another user gave this user that still work."""
    shares = []
    for share in store.list_shares_for_user(user_id):
        if not share.can_access():
            continue
        item = store.resolve_item(share.item)
        if item is None or item.is_deleted:
            continue
        shares.append(share)
    return shares
