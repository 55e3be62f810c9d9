from clouddrive.models.item import File, FileRef, Folder, FolderRef, Item, ItemRef, ItemType, item_ref
from clouddrive.models.permission import Permission, has_permission, rank
from clouddrive.models.share import Share
from clouddrive.models.user import User

__all__ = [
    "File",
    "FileRef",
    "Folder",
    "FolderRef",
    "Item",
    "ItemRef",
    "ItemType",
    "item_ref",
    "Permission",
    "has_permission",
    "rank",
    "Share",
    "User",
]
