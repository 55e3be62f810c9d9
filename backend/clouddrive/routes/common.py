from fastapi import HTTPException

from clouddrive.errors import STATUS_BY_REASON, CloudDriveError
from clouddrive.services.access_service import AccessDecision

DENIAL_MESSAGES = {
    "item_not_found": "Item not found",
    "link_not_found": "Invalid link",
    "link_inactive": "Link is disabled or expired",
    "password_required": "This link is password protected",
    "password_incorrect": "Incorrect password",
    "insufficient_permission": "This link does not allow that action",
    "forbidden": "You do not have access to this item",
}


def http_error(e: CloudDriveError) -> HTTPException:
    return HTTPException(
        status_code=e.status_code,
        detail={"reason": e.reason.value, "message": e.message},
    )


def denied(decision: AccessDecision) -> HTTPException:
    reason = decision.reason.value
    return HTTPException(
        status_code=STATUS_BY_REASON[decision.reason],
        detail={"reason": reason, "message": DENIAL_MESSAGES.get(reason, reason)},
    )
