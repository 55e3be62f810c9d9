import logging
from typing import Optional, Protocol

from clouddrive.models import Share, User

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify_access(self, share: Share, visitor: Optional[User]) -> None: ...


class LoggingNotifier:
    """Default notifier. Email delivery lives outside this service."""

    def notify_access(self, share: Share, visitor: Optional[User]) -> None:
        logger.info(
            "Share %s on %s %s accessed by %s (owner %s)",
            share.id, share.item_type.value, share.item_id,
            visitor.email if visitor else "anonymous link visitor",
            share.owner_id,
        )
