from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from pydantic import BaseModel

from clouddrive.auth.security import get_current_user, get_optional_user
from clouddrive.dependencies import get_evaluator, get_store
from clouddrive.errors import CloudDriveError
from clouddrive.models import File, ItemType, Permission, User, item_ref
from clouddrive.models.base import utcnow
from clouddrive.routes.common import denied, http_error
from clouddrive.routes.item_routes import download_descriptor
from clouddrive.services import item_service, share_service
from clouddrive.services.access_service import AccessEvaluator, LinkContext
from clouddrive.services.share_service import ShareChanges, ShareOptions
from clouddrive.store import SqliteStore

router = APIRouter(tags=["Share"])


class ShareCreate(ShareOptions):
    item_type: ItemType
    item_id: str
    expires_in_minutes: Optional[int] = None


class ShareExtend(BaseModel):
    expires_in_minutes: Optional[int] = None
    expires_at: Optional[datetime] = None


def share_payload(share, request: Request) -> dict:
    data = share.to_public_dict()
    if share.public_link:
        base = str(request.base_url).rstrip("/")
        data["share_url"] = f"{base}/s/{share.public_link}"
    return data


# Keep ping for testing
@router.get("/shares/ping")
def ping():
    return {"message": "Share router works"}


# ---------------------------
# Owner: create / list
# ---------------------------
@router.post("/shares", status_code=201)
def create_share(
    payload: ShareCreate,
    request: Request,
    user: User = Depends(get_current_user),
    store: SqliteStore = Depends(get_store),
):
    options = ShareOptions(**payload.model_dump(exclude={"item_type", "item_id", "expires_in_minutes"}))
    if payload.expires_in_minutes is not None:
        options.expires_at = utcnow() + timedelta(minutes=payload.expires_in_minutes)

    try:
        share = share_service.create_share(store, user.id, item_ref(payload.item_type, payload.item_id), options)
    except CloudDriveError as e:
        raise http_error(e)
    return share_payload(share, request)


@router.get("/shares")
def list_my_shares(
    request: Request,
    user: User = Depends(get_current_user),
    store: SqliteStore = Depends(get_store),
):
    return {"shares": [share_payload(s, request) for s in share_service.list_my_shares(store, user.id)]}


@router.get("/shares/with-me")
def list_shared_with_me(
    user: User = Depends(get_current_user),
    store: SqliteStore = Depends(get_store),
):
    items = []
    for share in share_service.list_shared_with_me(store, user.id):
        item = store.resolve_item(share.item)
        items.append({
            "share_id": share.id,
            "permission": share.permission.value,
            "owner_id": share.owner_id,
            "expires_at": share.expires_at.isoformat() if share.expires_at else None,
            "item": item_service.item_to_dict(item),
        })
    return {"items": items}


@router.get("/shares/item/{item_type}/{item_id}")
def list_item_shares(
    item_type: ItemType,
    item_id: str,
    request: Request,
    user: User = Depends(get_current_user),
    store: SqliteStore = Depends(get_store),
):
    try:
        shares = share_service.list_item_shares(store, user.id, item_ref(item_type, item_id))
    except CloudDriveError as e:
        raise http_error(e)
    return {"shares": [share_payload(s, request) for s in shares]}


# ---------------------------
# Owner: change / revoke / extend / delete
# ---------------------------
@router.patch("/shares/{share_id}")
def update_share(
    share_id: str,
    payload: ShareChanges,
    request: Request,
    user: User = Depends(get_current_user),
    store: SqliteStore = Depends(get_store),
):
    try:
        share = share_service.update_share(store, user.id, share_id, payload)
    except CloudDriveError as e:
        raise http_error(e)
    return share_payload(share, request)


@router.post("/shares/{share_id}/revoke")
def revoke(share_id: str, user: User = Depends(get_current_user), store: SqliteStore = Depends(get_store)):
    try:
        share_service.deactivate_share(store, user.id, share_id)
    except CloudDriveError as e:
        raise http_error(e)
    return {"message": "Share revoked"}


@router.post("/shares/{share_id}/extend")
def extend(
    share_id: str,
    payload: ShareExtend,
    user: User = Depends(get_current_user),
    store: SqliteStore = Depends(get_store),
):
    new_expires_at = payload.expires_at
    if payload.expires_in_minutes is not None:
        new_expires_at = utcnow() + timedelta(minutes=payload.expires_in_minutes)

    try:
        share = share_service.extend_share(store, user.id, share_id, new_expires_at)
    except CloudDriveError as e:
        raise http_error(e)
    return {
        "message": "Share extended/reactivated",
        "expires_at": share.expires_at.isoformat() if share.expires_at else None,
    }


@router.post("/shares/{share_id}/regenerate-link")
def regenerate_link(
    share_id: str,
    request: Request,
    user: User = Depends(get_current_user),
    store: SqliteStore = Depends(get_store),
):
    try:
        share = share_service.regenerate_public_link(store, user.id, share_id)
    except CloudDriveError as e:
        raise http_error(e)
    return share_payload(share, request)


@router.delete("/shares/{share_id}")
def delete_share(share_id: str, user: User = Depends(get_current_user), store: SqliteStore = Depends(get_store)):
    try:
        share_service.delete_share(store, user.id, share_id)
    except CloudDriveError as e:
        raise http_error(e)
    return {"message": "Share deleted"}


# ---------------------------
# Public: open a link
# ---------------------------
def link_context(
    token: str,
    password: Optional[str] = Query(None),
    x_share_password: Optional[str] = Header(None),
) -> LinkContext:
    return LinkContext(token=token, password=x_share_password or password)


@router.get("/s/{token}")
def open_share(
    link: LinkContext = Depends(link_context),
    item_type: Optional[ItemType] = Query(None),
    item_id: Optional[str] = Query(None),
    user: Optional[User] = Depends(get_optional_user),
    store: SqliteStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
):
    """
    Public: show the shared item.
    Example:
      /s/<token>                                  -> the shared file or folder
      /s/<token>?item_type=file&item_id=<id>      -> something inside a shared folder
    """
    target = item_ref(item_type, item_id) if item_type and item_id else None

    try:
        decision = evaluator.evaluate_link(user, link, Permission.VIEW, target)
    except CloudDriveError as e:
        raise http_error(e)
    if not decision:
        raise denied(decision)

    item = decision.item
    share = decision.share
    data = {
        "type": "file" if isinstance(item, File) else "folder",
        "item": item_service.item_to_dict(item),
        "permission": share.permission.value if share else Permission.DOWNLOAD.value,
        "allow_download": share.allow_download if share else True,
    }
    if not isinstance(item, File):
        folders, files = store.list_children(item.owner_id, item.id)
        data["folders"] = [item_service.item_to_dict(f) for f in folders]
        data["files"] = [item_service.item_to_dict(f) for f in files]
    return data


@router.get("/s/{token}/download")
def download_shared_file(
    link: LinkContext = Depends(link_context),
    item_id: Optional[str] = Query(None),
    user: Optional[User] = Depends(get_optional_user),
    evaluator: AccessEvaluator = Depends(get_evaluator),
):
    target = item_ref(ItemType.FILE, item_id) if item_id else None

    try:
        decision = evaluator.evaluate_link(user, link, Permission.DOWNLOAD, target)
    except CloudDriveError as e:
        raise http_error(e)
    if not decision:
        raise denied(decision)

    if not isinstance(decision.item, File):
        raise HTTPException(status_code=400, detail="Not a file share")
    return download_descriptor(decision.item)
