from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from clouddrive.errors import ValidationError
from clouddrive.models.base import Record, utcnow


class ItemType(str, Enum):
    FILE = "file"
    FOLDER = "folder"


class FileRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[ItemType.FILE] = ItemType.FILE
    id: str


class FolderRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[ItemType.FOLDER] = ItemType.FOLDER
    id: str


# a share or a request points at exactly one of these
ItemRef = Union[FileRef, FolderRef]


def item_ref(item_type: Union[ItemType, str], item_id: str) -> ItemRef:
    try:
        item_type = ItemType(item_type)
    except ValueError:
        raise ValidationError("item_type must be 'file' or 'folder'")

    if item_type is ItemType.FILE:
        return FileRef(id=item_id)
    return FolderRef(id=item_id)


class Folder(Record):
    id: str
    name: str
    description: Optional[str] = None
    path: str
    parent_id: Optional[str] = None
    owner_id: str
    color: Optional[str] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def ref(self) -> FolderRef:
        return FolderRef(id=self.id)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def mark_deleted(self, now: Optional[datetime] = None) -> None:
        self.is_deleted = True
        self.deleted_at = now or utcnow()

    def mark_restored(self) -> None:
        self.is_deleted = False
        self.deleted_at = None


class File(Record):
    id: str
    name: str
    original_name: str
    mime_type: str
    size: int = 0
    folder_id: Optional[str] = None
    owner_id: str
    storage_key: str
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def ref(self) -> FileRef:
        return FileRef(id=self.id)

    @property
    def parent_id(self) -> Optional[str]:
        return self.folder_id

    def mark_deleted(self, now: Optional[datetime] = None) -> None:
        self.is_deleted = True
        self.deleted_at = now or utcnow()

    def mark_restored(self) -> None:
        self.is_deleted = False
        self.deleted_at = None


Item = Union[File, Folder]
