"""Decides whether a principal may view, edit or download an item.

Rules are applied in a fixed order and the first match wins:

1. soft-deleted items are invisible (``item_not_found``) unless the caller is
   a trash operation;
2. the owner is always allowed;
3. an authenticated user holding a valid share on the item, or on a folder
   above it, with enough permission is allowed;
4. a public link token is checked for existence, validity, password,
   permission rank and the per-operation switches;
5. everything else is ``forbidden``.

Successful accesses through a share (rules 3 and 4) are counted afterwards.
Counting never changes the decision.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Union

from pydantic import BaseModel

from clouddrive.auth.passwords import verify_password
from clouddrive.errors import DenyReason
from clouddrive.models import FolderRef, Item, ItemRef, Permission, Share, User
from clouddrive.models.base import utcnow
from clouddrive.services.accounting import record_access
from clouddrive.services.item_service import resolve_item
from clouddrive.services.notifier import Notifier
from clouddrive.store import ShareStore

logger = logging.getLogger(__name__)


class AccessVia(str, Enum):
    OWNER = "owner"
    USER_SHARE = "user_share"
    PUBLIC_LINK = "public_link"


class LinkContext(BaseModel):
    token: str
    password: Optional[str] = None


class AccessDecision(BaseModel):
    allowed: bool
    reason: Optional[DenyReason] = None
    via: Optional[AccessVia] = None
    item: Optional[Item] = None
    share: Optional[Share] = None

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls, via: AccessVia, item: Item, share: Optional[Share] = None) -> "AccessDecision":
        return cls(allowed=True, via=via, item=item, share=share)

    @classmethod
    def deny(cls, reason: DenyReason, item: Optional[Item] = None) -> "AccessDecision":
        return cls(allowed=False, reason=reason, item=item)

    def to_dict(self) -> dict:
        data = {"allow": self.allowed}
        if self.reason is not None:
            data["reason"] = self.reason.value
        return data


class AccessEvaluator:
    def __init__(
        self,
        store: ShareStore,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.notifier = notifier
        self.clock = clock

    def evaluate(
        self,
        principal: Optional[User],
        ref: ItemRef,
        required: Union[Permission, str],
        link: Optional[LinkContext] = None,
        include_deleted: bool = False,
    ) -> AccessDecision:
        """Raises ``NotFoundError`` when ``ref`` does not resolve to an item."""
        required = Permission(required)
        now = self.clock()

        decision = self._decide(principal, resolve_item(self.store, ref), required, link, include_deleted, now)

        if decision.allowed:
            if decision.share is not None:
                record_access(self.store, decision.share, principal, self.notifier, now)
        else:
            logger.debug(
                "Denied %s on %s %s for %s: %s",
                required.value, ref.type.value, ref.id,
                principal.id if principal else "anonymous", decision.reason.value,
            )
        return decision

    def evaluate_link(
        self,
        principal: Optional[User],
        link: LinkContext,
        required: Union[Permission, str],
        target: Optional[ItemRef] = None,
    ) -> AccessDecision:
        """Entry point for public link visits.

        ``target`` defaults to the shared item; pass a ref below a shared
        folder to reach its contents.
        """
        share = self.store.find_share_by_public_link(link.token)
        if share is None:
            logger.debug("Unknown public link presented")
            return AccessDecision.deny(DenyReason.LINK_NOT_FOUND)
        return self.evaluate(principal, target or share.item, required, link)

    def _decide(self, principal, item, required, link, include_deleted, now) -> AccessDecision:
        if item.is_deleted and not include_deleted:
            return AccessDecision.deny(DenyReason.ITEM_NOT_FOUND)

        if principal is not None and principal.id == item.owner_id:
            return AccessDecision.allow(AccessVia.OWNER, item)

        covering = None

        if principal is not None:
            covering = self._covering_refs(item)
            share = self._user_share(principal, covering, required, now)
            if share is not None:
                return AccessDecision.allow(AccessVia.USER_SHARE, item, share)

        if link is not None:
            return self._check_link(item, covering or self._covering_refs(item), required, link, now)

        return AccessDecision.deny(DenyReason.FORBIDDEN, item)

    def _covering_refs(self, item: Item) -> List[ItemRef]:
        """The item itself, then every folder above it; a share on any of them applies."""
        refs = [item.ref]
        if item.parent_id is not None:
            refs.extend(FolderRef(id=f.id) for f in self.store.folder_ancestors(item.parent_id))
        return refs

    def _user_share(self, principal: User, covering: List[ItemRef], required: Permission, now) -> Optional[Share]:
        for ref in covering:
            shares = self.store.find_shares(ref, principal.id)
            if not shares and principal.email:
                shares = self.store.find_email_invites(ref, principal.email)
            for share in shares:
                if share.has_permission(required, now):
                    return share
        return None

    def _check_link(self, item, covering, required, link: LinkContext, now) -> AccessDecision:
        share = self.store.find_share_by_public_link(link.token)
        if share is None or not share.is_public or share.item not in covering:
            return AccessDecision.deny(DenyReason.LINK_NOT_FOUND, item)

        if not share.can_access(now):
            return AccessDecision.deny(DenyReason.LINK_INACTIVE, item)

        if share.has_password:
            if not link.password:
                return AccessDecision.deny(DenyReason.PASSWORD_REQUIRED, item)
            if not verify_password(link.password, share.password):
                return AccessDecision.deny(DenyReason.PASSWORD_INCORRECT, item)

        if not share.has_permission(required, now) or not share.allows_operation(required):
            return AccessDecision.deny(DenyReason.INSUFFICIENT_PERMISSION, item)

        return AccessDecision.allow(AccessVia.PUBLIC_LINK, item, share)
