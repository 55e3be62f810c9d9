import logging
from datetime import datetime
from typing import Optional

from clouddrive.models import Share, User
from clouddrive.models.base import utcnow
from clouddrive.services.notifier import Notifier
from clouddrive.store import ShareStore

logger = logging.getLogger(__name__)


def record_access(
    store: ShareStore,
    share: Share,
    visitor: Optional[User] = None,
    notifier: Optional[Notifier] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Count a successful access through ``share``.

    Best effort: a failure here is logged and never changes the access
    decision that was already made. Returns whether the counter moved.
    """
    now = now or utcnow()
    try:
        updated = store.increment_share_access(share.id, now)
    except Exception:
        logger.exception("Failed to record access for share %s", share.id)
        return False

    if not updated:
        logger.warning("Share %s vanished before its access could be recorded", share.id)
        return False

    if share.notify_on_access and notifier is not None:
        try:
            notifier.notify_access(share, visitor)
        except Exception:
            logger.exception("Access notification failed for share %s", share.id)

    return True
