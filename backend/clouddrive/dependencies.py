from typing import Iterator

from fastapi import Depends

from clouddrive.db import get_db
from clouddrive.services.access_service import AccessEvaluator
from clouddrive.services.notifier import LoggingNotifier, Notifier
from clouddrive.store import SqliteStore

_notifier: Notifier = LoggingNotifier()


def get_store() -> Iterator[SqliteStore]:
    """One connection per request, closed when the response is sent."""
    store = SqliteStore(get_db())
    try:
        yield store
    finally:
        store.close()


def get_notifier() -> Notifier:
    return _notifier


def get_evaluator(
    store: SqliteStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
) -> AccessEvaluator:
    return AccessEvaluator(store, notifier)
