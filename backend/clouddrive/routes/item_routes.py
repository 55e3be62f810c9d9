from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from clouddrive.auth.security import get_current_user
from clouddrive.dependencies import get_evaluator, get_store
from clouddrive.errors import CloudDriveError
from clouddrive.models import File, FolderRef, ItemType, Permission, User, item_ref
from clouddrive.routes.common import denied, http_error
from clouddrive.services import item_service
from clouddrive.services.access_service import AccessEvaluator
from clouddrive.store import SqliteStore

router = APIRouter(tags=["Items"])


class FolderCreate(BaseModel):
    name: str
    parent_id: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None


class FolderMove(BaseModel):
    parent_id: Optional[str] = None


class FileCreate(BaseModel):
    name: str
    mime_type: str = "application/octet-stream"
    size: int = 0
    folder_id: Optional[str] = None
    storage_key: Optional[str] = None


class RenameRequest(BaseModel):
    name: str


def listing(folders, files) -> dict:
    return {
        "folders": [item_service.item_to_dict(f) for f in folders],
        "files": [item_service.item_to_dict(f) for f in files],
    }


# -----------------------------
# Folders
# -----------------------------

@router.post("/folders", status_code=201)
def create_folder(
    payload: FolderCreate,
    user: User = Depends(get_current_user),
    store: SqliteStore = Depends(get_store),
):
    try:
        folder = item_service.create_folder(
            store, user.id, payload.name, payload.parent_id, payload.description, payload.color
        )
    except CloudDriveError as e:
        raise http_error(e)
    return item_service.item_to_dict(folder)


@router.get("/folders")
def list_root(user: User = Depends(get_current_user), store: SqliteStore = Depends(get_store)):
    return listing(*item_service.list_folder(store, user.id, None))


@router.get("/folders/{folder_id}/children")
def list_children(
    folder_id: str,
    user: User = Depends(get_current_user),
    store: SqliteStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
):
    try:
        decision = evaluator.evaluate(user, FolderRef(id=folder_id), Permission.VIEW)
    except CloudDriveError as e:
        raise http_error(e)
    if not decision:
        raise denied(decision)

    folder = decision.item
    return {
        "folder": item_service.item_to_dict(folder),
        **listing(*store.list_children(folder.owner_id, folder.id)),
    }


@router.patch("/folders/{folder_id}/move")
def move_folder(
    folder_id: str,
    payload: FolderMove,
    user: User = Depends(get_current_user),
    store: SqliteStore = Depends(get_store),
):
    try:
        folder = item_service.move_folder(store, user.id, folder_id, payload.parent_id)
    except CloudDriveError as e:
        raise http_error(e)
    return item_service.item_to_dict(folder)


# -----------------------------
# Files
# -----------------------------

@router.post("/files", status_code=201)
def register_file(
    payload: FileCreate,
    user: User = Depends(get_current_user),
    store: SqliteStore = Depends(get_store),
):
    try:
        file = item_service.register_file(
            store, user, payload.name, payload.mime_type, payload.size, payload.folder_id, payload.storage_key
        )
    except CloudDriveError as e:
        raise http_error(e)
    return item_service.item_to_dict(file)


# -----------------------------
# Any item
# -----------------------------

@router.get("/items/{item_type}/{item_id}")
def get_item(
    item_type: ItemType,
    item_id: str,
    user: User = Depends(get_current_user),
    evaluator: AccessEvaluator = Depends(get_evaluator),
):
    try:
        decision = evaluator.evaluate(user, item_ref(item_type, item_id), Permission.VIEW)
    except CloudDriveError as e:
        raise http_error(e)
    if not decision:
        raise denied(decision)

    return {"item": item_service.item_to_dict(decision.item), "access": decision.via.value}


@router.get("/items/{item_type}/{item_id}/download")
def download_item(
    item_type: ItemType,
    item_id: str,
    user: User = Depends(get_current_user),
    evaluator: AccessEvaluator = Depends(get_evaluator),
):
    try:
        decision = evaluator.evaluate(user, item_ref(item_type, item_id), Permission.DOWNLOAD)
    except CloudDriveError as e:
        raise http_error(e)
    if not decision:
        raise denied(decision)

    return download_descriptor(decision.item)


def download_descriptor(item) -> dict:
    # the object storage layer turns this into a signed URL or a stream
    if not isinstance(item, File):
        raise HTTPException(status_code=400, detail="Not a file")
    return {
        "id": item.id,
        "name": item.name,
        "mime_type": item.mime_type,
        "size": item.size,
        "storage_key": item.storage_key,
    }


@router.patch("/items/{item_type}/{item_id}")
def rename_item(
    item_type: ItemType,
    item_id: str,
    payload: RenameRequest,
    user: User = Depends(get_current_user),
    store: SqliteStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
):
    try:
        decision = evaluator.evaluate(user, item_ref(item_type, item_id), Permission.EDIT)
        if not decision:
            raise denied(decision)
        item = item_service.rename_item(store, decision.item, payload.name)
    except CloudDriveError as e:
        raise http_error(e)
    return item_service.item_to_dict(item)


@router.delete("/items/{item_type}/{item_id}")
def delete_item(
    item_type: ItemType,
    item_id: str,
    user: User = Depends(get_current_user),
    store: SqliteStore = Depends(get_store),
):
    try:
        item_service.soft_delete_item(store, user.id, item_ref(item_type, item_id))
    except CloudDriveError as e:
        raise http_error(e)
    return {"message": "Moved to trash"}


@router.post("/items/{item_type}/{item_id}/restore")
def restore_item(
    item_type: ItemType,
    item_id: str,
    user: User = Depends(get_current_user),
    store: SqliteStore = Depends(get_store),
):
    try:
        item = item_service.restore_item(store, user.id, item_ref(item_type, item_id))
    except CloudDriveError as e:
        raise http_error(e)
    return item_service.item_to_dict(item)


@router.delete("/items/{item_type}/{item_id}/purge")
def purge_item(
    item_type: ItemType,
    item_id: str,
    user: User = Depends(get_current_user),
    store: SqliteStore = Depends(get_store),
):
    try:
        item_service.purge_item(store, user.id, item_ref(item_type, item_id))
    except CloudDriveError as e:
        raise http_error(e)
    return {"message": "Permanently deleted"}


@router.get("/trash")
def list_trash(user: User = Depends(get_current_user), store: SqliteStore = Depends(get_store)):
    return listing(*item_service.list_trash(store, user.id))
