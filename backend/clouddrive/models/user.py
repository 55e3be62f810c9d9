from datetime import datetime
from enum import Enum
from typing import Optional

from clouddrive.models.base import Record


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Tier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"


class User(Record):
    id: str
    name: str
    email: str
    password_hash: str
    role: Role = Role.USER
    tier: Tier = Tier.FREE
    storage_used: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def to_public_dict(self) -> dict:
        return self.model_dump(mode="json", exclude={"password_hash"})
