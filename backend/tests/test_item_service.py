import pytest

from clouddrive.errors import NotFoundError, ValidationError
from clouddrive.models import File, FileRef, Folder, FolderRef
from clouddrive.services import item_service, share_service
from clouddrive.services.share_service import ShareOptions


def test_resolve_item_by_type(store, alice_file, alice_folder):
    assert isinstance(item_service.resolve_item(store, alice_file.ref), File)
    assert isinstance(item_service.resolve_item(store, alice_folder.ref), Folder)


def test_resolve_item_wrong_type_is_not_found(store, alice_file):
    with pytest.raises(NotFoundError):
        item_service.resolve_item(store, FolderRef(id=alice_file.id))


def test_folder_paths(store, alice):
    top = item_service.create_folder(store, alice.id, "Top")
    inner = item_service.create_folder(store, alice.id, "Inner", parent_id=top.id)
    assert top.path == "/Top"
    assert top.is_root
    assert inner.path == "/Top/Inner"


@pytest.mark.parametrize("name", ["", "   ", "a/b", "..", "back\\slash"])
def test_bad_names(store, alice, name):
    with pytest.raises(ValidationError):
        item_service.create_folder(store, alice.id, name)


def test_bad_color(store, alice):
    with pytest.raises(ValidationError):
        item_service.create_folder(store, alice.id, "Red", color="red")


def test_parent_must_belong_to_owner(store, alice, bob):
    top = item_service.create_folder(store, alice.id, "Top")
    with pytest.raises(NotFoundError):
        item_service.create_folder(store, bob.id, "Sneaky", parent_id=top.id)


def test_move_rewrites_paths(store, alice):
    a = item_service.create_folder(store, alice.id, "A")
    b = item_service.create_folder(store, alice.id, "B")
    child = item_service.create_folder(store, alice.id, "Child", parent_id=a.id)
    grandchild = item_service.create_folder(store, alice.id, "Grand", parent_id=child.id)

    moved = item_service.move_folder(store, alice.id, child.id, b.id)
    assert moved.parent_id == b.id
    assert moved.path == "/B/Child"
    assert store.get_folder(grandchild.id).path == "/B/Child/Grand"


def test_move_into_own_descendant_is_rejected(store, alice):
    a = item_service.create_folder(store, alice.id, "A")
    b = item_service.create_folder(store, alice.id, "B", parent_id=a.id)
    c = item_service.create_folder(store, alice.id, "C", parent_id=b.id)

    with pytest.raises(ValidationError):
        item_service.move_folder(store, alice.id, a.id, c.id)
    with pytest.raises(ValidationError):
        item_service.move_folder(store, alice.id, a.id, a.id)
    assert store.get_folder(a.id).parent_id is None


def test_move_to_root(store, alice):
    a = item_service.create_folder(store, alice.id, "A")
    b = item_service.create_folder(store, alice.id, "B", parent_id=a.id)
    moved = item_service.move_folder(store, alice.id, b.id, None)
    assert moved.parent_id is None
    assert moved.path == "/B"


def test_rename_folder_updates_children(store, alice):
    a = item_service.create_folder(store, alice.id, "A")
    b = item_service.create_folder(store, alice.id, "B", parent_id=a.id)
    renamed = item_service.rename_item(store, a, "Archive")
    assert renamed.name == "Archive"
    assert renamed.path == "/Archive"
    assert store.get_folder(b.id).path == "/Archive/B"


def test_register_file_tracks_storage(store, alice, alice_folder):
    item_service.register_file(store, alice, "a.bin", "application/octet-stream", 500, folder_id=alice_folder.id)
    assert store.get_user(alice.id).storage_used == 500


def test_free_tier_quota(store, alice, monkeypatch):
    monkeypatch.setattr(item_service, "FREE_TIER_QUOTA", 1000)
    with pytest.raises(ValidationError):
        item_service.register_file(store, alice, "big.bin", "application/octet-stream", 1001)


def test_soft_delete_folder_cascades(store, alice, alice_folder):
    inner = item_service.create_folder(store, alice.id, "Inner", parent_id=alice_folder.id)
    doc = item_service.register_file(store, alice, "doc.txt", "text/plain", 5, folder_id=inner.id)

    item_service.soft_delete_item(store, alice.id, alice_folder.ref)

    for ref in (alice_folder.ref, inner.ref, doc.ref):
        item = store.resolve_item(ref)
        assert item.is_deleted
        assert item.deleted_at is not None

    folders, files = item_service.list_folder(store, alice.id, None)
    assert folders == [] and files == []
    trash_folders, trash_files = item_service.list_trash(store, alice.id)
    assert {f.id for f in trash_folders} == {alice_folder.id, inner.id}
    assert [f.id for f in trash_files] == [doc.id]


def test_soft_delete_keeps_shares(store, alice, bob, alice_file):
    share = share_service.create_share(store, alice.id, alice_file.ref, ShareOptions(shared_with_id=bob.id))
    item_service.soft_delete_item(store, alice.id, alice_file.ref)
    assert store.get_share(share.id) is not None


def test_restore_folder_restores_subtree(store, alice, alice_folder):
    doc = item_service.register_file(store, alice, "doc.txt", "text/plain", 5, folder_id=alice_folder.id)
    item_service.soft_delete_item(store, alice.id, alice_folder.ref)

    restored = item_service.restore_item(store, alice.id, alice_folder.ref)
    assert not restored.is_deleted
    assert not store.get_file(doc.id).is_deleted


def test_restore_file_from_trashed_folder_lands_at_root(store, alice, alice_folder):
    doc = item_service.register_file(store, alice, "doc.txt", "text/plain", 5, folder_id=alice_folder.id)
    item_service.soft_delete_item(store, alice.id, alice_folder.ref)

    restored = item_service.restore_item(store, alice.id, doc.ref)
    assert not restored.is_deleted
    assert restored.folder_id is None


def test_restore_requires_trash(store, alice, alice_file):
    with pytest.raises(ValidationError):
        item_service.restore_item(store, alice.id, alice_file.ref)


def test_purge_removes_item_and_shares(store, alice, bob, alice_folder):
    doc = item_service.register_file(store, alice, "doc.txt", "text/plain", 300, folder_id=alice_folder.id)
    folder_share = share_service.create_share(store, alice.id, alice_folder.ref, ShareOptions(is_public=True))
    file_share = share_service.create_share(store, alice.id, doc.ref, ShareOptions(shared_with_id=bob.id))

    with pytest.raises(ValidationError):
        item_service.purge_item(store, alice.id, alice_folder.ref)

    item_service.soft_delete_item(store, alice.id, alice_folder.ref)
    item_service.purge_item(store, alice.id, alice_folder.ref)

    assert store.get_folder(alice_folder.id) is None
    assert store.get_file(doc.id) is None
    assert store.get_share(folder_share.id) is None
    assert store.get_share(file_share.id) is None
    assert store.get_user(alice.id).storage_used == 0


def test_other_users_items_look_missing(store, bob, alice_file):
    with pytest.raises(NotFoundError):
        item_service.soft_delete_item(store, bob.id, alice_file.ref)
    with pytest.raises(NotFoundError):
        item_service.soft_delete_item(store, bob.id, FileRef(id="missing"))
