from enum import Enum


class DenyReason(str, Enum):
    ITEM_NOT_FOUND = "item_not_found"
    LINK_NOT_FOUND = "link_not_found"
    LINK_INACTIVE = "link_inactive"
    PASSWORD_REQUIRED = "password_required"
    PASSWORD_INCORRECT = "password_incorrect"
    INSUFFICIENT_PERMISSION = "insufficient_permission"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION_ERROR = "validation_error"


# machine-readable reason -> HTTP status used by the routes
STATUS_BY_REASON = {
    DenyReason.ITEM_NOT_FOUND: 404,
    DenyReason.LINK_NOT_FOUND: 404,
    DenyReason.NOT_FOUND: 404,
    DenyReason.PASSWORD_REQUIRED: 401,
    DenyReason.PASSWORD_INCORRECT: 403,
    DenyReason.LINK_INACTIVE: 403,
    DenyReason.INSUFFICIENT_PERMISSION: 403,
    DenyReason.FORBIDDEN: 403,
    DenyReason.CONFLICT: 409,
    DenyReason.VALIDATION_ERROR: 400,
}


class CloudDriveError(Exception):
    reason = DenyReason.FORBIDDEN

    def __init__(self, message: str = "", reason: DenyReason = None):
        super().__init__(message or (reason or self.reason).value)
        if reason is not None:
            self.reason = reason

    @property
    def message(self) -> str:
        return str(self)

    @property
    def status_code(self) -> int:
        return STATUS_BY_REASON[self.reason]


class NotFoundError(CloudDriveError):
    reason = DenyReason.NOT_FOUND


class ConflictError(CloudDriveError):
    reason = DenyReason.CONFLICT


class ForbiddenError(CloudDriveError):
    reason = DenyReason.FORBIDDEN


class ValidationError(CloudDriveError):
    reason = DenyReason.VALIDATION_ERROR
