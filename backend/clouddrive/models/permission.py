from enum import Enum
from typing import Union


class Permission(str, Enum):
    """Share permissions, weakest first.

    The order is total: a stronger permission implies every weaker one, so a
    ``download`` grant also covers ``edit`` and ``view`` requests.
    """

    VIEW = "view"
    EDIT = "edit"
    DOWNLOAD = "download"


RANKS = {
    Permission.VIEW: 1,
    Permission.EDIT: 2,
    Permission.DOWNLOAD: 3,
}


def rank(permission: Union[Permission, str]) -> int:
    return RANKS[Permission(permission)]


def has_permission(granted: Union[Permission, str], required: Union[Permission, str]) -> bool:
    return rank(granted) >= rank(required)
