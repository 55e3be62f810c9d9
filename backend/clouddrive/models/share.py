from datetime import datetime
from typing import Optional, Union

from clouddrive.models.base import Record, utcnow
from clouddrive.models.item import ItemRef, ItemType, item_ref
from clouddrive.models.permission import Permission, has_permission


class Share(Record):
    id: str

    # who created the grant
    owner_id: str

    # what is being shared
    item_id: str
    item_type: ItemType

    # who it is shared with: a registered user, an email invite, or anyone
    # holding the public link
    shared_with_id: Optional[str] = None
    shared_with_email: Optional[str] = None
    is_public: bool = False
    public_link: Optional[str] = None

    permission: Permission = Permission.VIEW

    # bcrypt hash, never the plain secret
    password: Optional[str] = None

    is_active: bool = True
    expires_at: Optional[datetime] = None

    # narrow the permission for link visitors, never widen it
    allow_download: bool = True
    allow_edit: bool = False

    access_count: int = 0
    last_accessed: Optional[datetime] = None
    notify_on_access: bool = False

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def item(self) -> ItemRef:
        return item_ref(self.item_type, self.item_id)

    @property
    def has_password(self) -> bool:
        return bool(self.password)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) > self.expires_at

    def can_access(self, now: Optional[datetime] = None) -> bool:
        return self.is_active and not self.is_expired(now)

    def has_permission(self, required: Union[Permission, str], now: Optional[datetime] = None) -> bool:
        if not self.can_access(now):
            return False
        return has_permission(self.permission, required)

    def allows_operation(self, required: Union[Permission, str]) -> bool:
        """Per-operation switches layered over the permission rank."""
        required = Permission(required)
        if required is Permission.DOWNLOAD:
            return self.allow_download
        if required is Permission.EDIT:
            return self.allow_edit
        return True

    def to_public_dict(self) -> dict:
        data = self.model_dump(mode="json", exclude={"password"})
        data["has_password"] = self.has_password
        data["is_expired"] = self.is_expired()
        return data
