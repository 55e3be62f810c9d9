import logging
import re
import uuid
from typing import List, Optional, Tuple

from clouddrive.config import FREE_TIER_QUOTA
from clouddrive.errors import NotFoundError, ValidationError
from clouddrive.models import File, Folder, FolderRef, Item, ItemRef, User
from clouddrive.models.base import utcnow
from clouddrive.models.user import Tier
from clouddrive.store import SqliteStore

logger = logging.getLogger(__name__)

COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


def validate_name(name: str) -> str:
    name = (name or "").strip()

    if not name:
        raise ValidationError("Name required")

    if len(name) > 255:
        raise ValidationError("Name too long")

    # block slashes and path tricks
    if "/" in name or "\\" in name:
        raise ValidationError("Invalid name")

    if name in [".", ".."]:
        raise ValidationError("Invalid name")

    return name


def resolve_item(store: SqliteStore, ref: ItemRef) -> Item:
    item = store.resolve_item(ref)
    if item is None:
        raise NotFoundError(f"{ref.type.value.capitalize()} not found")
    return item


def get_owned_item(store: SqliteStore, owner_id: str, ref: ItemRef) -> Item:
    item = resolve_item(store, ref)
    # someone else's item looks the same as a missing one
    if item.owner_id != owner_id:
        raise NotFoundError(f"{ref.type.value.capitalize()} not found")
    return item


def _live_parent(store: SqliteStore, owner_id: str, parent_id: Optional[str]) -> Optional[Folder]:
    if parent_id is None:
        return None
    parent = store.get_folder(parent_id)
    if parent is None or parent.owner_id != owner_id or parent.is_deleted:
        raise NotFoundError("Parent folder not found")
    return parent


def create_folder(
    store: SqliteStore,
    owner_id: str,
    name: str,
    parent_id: Optional[str] = None,
    description: Optional[str] = None,
    color: Optional[str] = None,
) -> Folder:
    name = validate_name(name)
    if color and not COLOR_RE.match(color):
        raise ValidationError("Color must look like #RRGGBB")

    parent = _live_parent(store, owner_id, parent_id)
    path = f"{parent.path}/{name}" if parent else f"/{name}"

    folder = Folder(
        id=str(uuid.uuid4()),
        name=name,
        description=description,
        path=path,
        parent_id=parent.id if parent else None,
        owner_id=owner_id,
        color=color,
        created_at=utcnow(),
    )
    store.insert_folder(folder)
    logger.info("Folder %s created by %s at %s", folder.id, owner_id, path)
    return folder


def move_folder(store: SqliteStore, owner_id: str, folder_id: str, new_parent_id: Optional[str]) -> Folder:
    folder = get_owned_item(store, owner_id, FolderRef(id=folder_id))
    if folder.is_deleted:
        raise NotFoundError("Folder not found")

    parent = _live_parent(store, owner_id, new_parent_id)

    # a folder may never become its own ancestor
    if parent is not None and folder.id in {f.id for f in store.folder_ancestors(parent.id)}:
        raise ValidationError("Cannot move folder: would create circular reference")

    new_path = f"{parent.path}/{folder.name}" if parent else f"/{folder.name}"
    store.move_folder(folder.id, parent.id if parent else None, folder.path, new_path)
    return store.get_folder(folder.id)


def rename_item(store: SqliteStore, item: Item, name: str) -> Item:
    """Caller has already checked ``edit`` access on ``item``."""
    name = validate_name(name)
    if isinstance(item, Folder):
        parent = store.get_folder(item.parent_id) if item.parent_id else None
        new_path = f"{parent.path}/{name}" if parent else f"/{name}"
        store.rename_folder(item.id, name, item.path, new_path)
    else:
        store.rename_file(item.id, name)
    return resolve_item(store, item.ref)


def register_file(
    store: SqliteStore,
    owner: User,
    name: str,
    mime_type: str,
    size: int,
    folder_id: Optional[str] = None,
    storage_key: Optional[str] = None,
) -> File:
    """Record an uploaded object. The bytes themselves are handled by object storage."""
    name = validate_name(name)
    if size < 0:
        raise ValidationError("Size must not be negative")

    if owner.tier is Tier.FREE and owner.storage_used + size > FREE_TIER_QUOTA:
        raise ValidationError("Storage quota exceeded")

    folder = _live_parent(store, owner.id, folder_id)
    file_id = str(uuid.uuid4())

    file = File(
        id=file_id,
        name=name,
        original_name=name,
        mime_type=mime_type or "application/octet-stream",
        size=size,
        folder_id=folder.id if folder else None,
        owner_id=owner.id,
        storage_key=storage_key or f"users/{owner.id}/{file_id}",
        created_at=utcnow(),
    )
    store.insert_file(file)
    store.add_storage_used(owner.id, size)
    return file


def soft_delete_item(store: SqliteStore, owner_id: str, ref: ItemRef) -> Item:
    item = get_owned_item(store, owner_id, ref)
    if item.is_deleted:
        return item

    now = utcnow()
    item.mark_deleted(now)
    if isinstance(ref, FolderRef):
        store.set_deleted(store.folder_descendant_ids(item.id), [], True, now)
    else:
        store.set_deleted([], [item.id], True, now)

    logger.info("%s %s moved to trash by %s", ref.type.value.capitalize(), item.id, owner_id)
    return item


def restore_item(store: SqliteStore, owner_id: str, ref: ItemRef) -> Item:
    item = get_owned_item(store, owner_id, ref)
    if not item.is_deleted:
        raise ValidationError("Item is not in trash")

    # restored items whose parent is still in trash land at the root
    parent = store.get_folder(item.parent_id) if item.parent_id else None
    detach = parent is not None and parent.is_deleted

    if isinstance(ref, FolderRef):
        if detach:
            store.move_folder(item.id, None, item.path, f"/{item.name}")
        store.set_deleted(store.folder_descendant_ids(item.id), [], False)
    else:
        if detach:
            store.detach_file(item.id)
        store.set_deleted([], [item.id], False)

    return resolve_item(store, ref)


def purge_item(store: SqliteStore, owner_id: str, ref: ItemRef) -> None:
    """Permanently delete a trashed item, its contents and every share on them."""
    item = get_owned_item(store, owner_id, ref)
    if not item.is_deleted:
        raise ValidationError("Only items in trash can be permanently deleted")

    if isinstance(ref, FolderRef):
        folder_ids = store.folder_descendant_ids(item.id)
        files = store.files_in_folders(folder_ids)
    else:
        folder_ids = []
        files = [item]

    store.purge(folder_ids, [f.id for f in files])
    freed = sum(f.size for f in files)
    if freed:
        store.add_storage_used(owner_id, -freed)

    logger.info("%s %s purged by %s (%d bytes freed)", ref.type.value.capitalize(), item.id, owner_id, freed)


def list_folder(store: SqliteStore, owner_id: str, folder_id: Optional[str]) -> Tuple[List[Folder], List[File]]:
    if folder_id is not None:
        folder = get_owned_item(store, owner_id, FolderRef(id=folder_id))
        if folder.is_deleted:
            raise NotFoundError("Folder not found")
    return store.list_children(owner_id, folder_id)


def list_trash(store: SqliteStore, owner_id: str) -> Tuple[List[Folder], List[File]]:
    return store.list_trash(owner_id)


def item_to_dict(item: Item) -> dict:
    data = item.model_dump(mode="json")
    data["type"] = "file" if isinstance(item, File) else "folder"
    return data
