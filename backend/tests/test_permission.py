import itertools

import pytest

from clouddrive.models import Permission, has_permission, rank

ALL = list(Permission)


def test_ranks_are_strictly_ordered():
    assert rank(Permission.VIEW) < rank(Permission.EDIT) < rank(Permission.DOWNLOAD)


@pytest.mark.parametrize("required", ALL)
def test_download_covers_everything(required):
    assert rank(Permission.DOWNLOAD) >= rank(required)
    assert has_permission(Permission.DOWNLOAD, required)


@pytest.mark.parametrize("granted,required", list(itertools.product(ALL, ALL)))
def test_has_permission_matches_rank(granted, required):
    assert has_permission(granted, required) == (rank(granted) >= rank(required))


def test_accepts_plain_strings():
    assert has_permission("edit", "view")
    assert not has_permission("view", "download")


def test_unknown_permission_is_rejected():
    with pytest.raises(ValueError):
        rank("upload")
