"""Persistence for users, items and shares.

``SqliteStore`` wraps one sqlite connection for the lifetime of a request.
Services and the access evaluator receive it explicitly; they never open
connections of their own.
"""

import logging
import sqlite3
from datetime import datetime
from typing import Iterable, List, Optional, Protocol

from clouddrive.errors import ConflictError
from clouddrive.models import File, FileRef, Folder, FolderRef, Item, ItemRef, Share, User
from clouddrive.models.base import utcnow

logger = logging.getLogger(__name__)

SHARE_COLUMNS = (
    "id", "owner_id", "item_id", "item_type", "shared_with_id", "shared_with_email",
    "permission", "is_public", "public_link", "password", "expires_at", "is_active",
    "allow_download", "allow_edit", "access_count", "last_accessed", "notify_on_access",
    "created_at", "updated_at",
)

# columns an owner may change after creation
SHARE_MUTABLE_COLUMNS = {
    "permission", "is_public", "public_link", "password", "expires_at", "is_active",
    "allow_download", "allow_edit", "notify_on_access",
}


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _db_value(value):
    if isinstance(value, datetime):
        return _ts(value)
    if hasattr(value, "value"):   # enums
        return value.value
    return value


class ShareStore(Protocol):
    """What the access evaluator needs from persistence."""

    def resolve_item(self, ref: ItemRef) -> Optional[Item]: ...

    def folder_ancestors(self, folder_id: str) -> List[Folder]: ...

    def find_shares(self, ref: ItemRef, shared_with_id: str) -> List[Share]: ...

    def find_email_invites(self, ref: ItemRef, email: str) -> List[Share]: ...

    def find_share_by_public_link(self, token: str) -> Optional[Share]: ...

    def increment_share_access(self, share_id: str, now: datetime) -> bool: ...


class SqliteStore:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def close(self) -> None:
        self.conn.close()

    # -----------------------------
    # Users
    # -----------------------------

    def insert_user(self, user: User) -> User:
        try:
            with self.conn:
                self.conn.execute("""
                    INSERT INTO users (id, name, email, password_hash, role, tier,
                                       storage_used, is_active, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    user.id, user.name, user.email, user.password_hash, user.role.value,
                    user.tier.value, user.storage_used, int(user.is_active), _ts(user.created_at),
                ))
        except sqlite3.IntegrityError:
            raise ConflictError("Email already registered")
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        row = self.conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return User.from_row(row)

    def get_user_by_email(self, email: str) -> Optional[User]:
        row = self.conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return User.from_row(row)

    def add_storage_used(self, user_id: str, delta: int) -> None:
        with self.conn:
            self.conn.execute(
                "UPDATE users SET storage_used = MAX(storage_used + ?, 0) WHERE id = ?",
                (delta, user_id),
            )

    def bind_email_invites(self, email: str, user_id: str) -> int:
        with self.conn:
            res = self.conn.execute("""
                UPDATE shares SET shared_with_id = ?, updated_at = ?
                WHERE shared_with_email = ? AND shared_with_id IS NULL
            """, (user_id, _ts(utcnow()), email))
        return res.rowcount

    # -----------------------------
    # Items
    # -----------------------------

    def insert_folder(self, folder: Folder) -> Folder:
        with self.conn:
            self.conn.execute("""
                INSERT INTO folders (id, name, description, path, parent_id, owner_id,
                                     color, is_deleted, deleted_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                folder.id, folder.name, folder.description, folder.path, folder.parent_id,
                folder.owner_id, folder.color, int(folder.is_deleted), _ts(folder.deleted_at),
                _ts(folder.created_at),
            ))
        return folder

    def insert_file(self, file: File) -> File:
        try:
            with self.conn:
                self.conn.execute("""
                    INSERT INTO files (id, name, original_name, mime_type, size, folder_id,
                                       owner_id, storage_key, is_deleted, deleted_at, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    file.id, file.name, file.original_name, file.mime_type, file.size,
                    file.folder_id, file.owner_id, file.storage_key, int(file.is_deleted),
                    _ts(file.deleted_at), _ts(file.created_at),
                ))
        except sqlite3.IntegrityError:
            raise ConflictError("Storage key already in use")
        return file

    def get_folder(self, folder_id: str) -> Optional[Folder]:
        row = self.conn.execute("SELECT * FROM folders WHERE id = ?", (folder_id,)).fetchone()
        return Folder.from_row(row)

    def get_file(self, file_id: str) -> Optional[File]:
        row = self.conn.execute("SELECT * FROM files WHERE id = ?", (file_id,)).fetchone()
        return File.from_row(row)

    def resolve_item(self, ref: ItemRef) -> Optional[Item]:
        if isinstance(ref, FileRef):
            return self.get_file(ref.id)
        if isinstance(ref, FolderRef):
            return self.get_folder(ref.id)
        raise TypeError(f"Unknown item reference: {ref!r}")

    def folder_ancestors(self, folder_id: str) -> List[Folder]:
        """The folder itself followed by its parents up to the root."""
        rows = self.conn.execute("""
            WITH RECURSIVE chain(id, depth) AS (
                SELECT id, 0 FROM folders WHERE id = ?
                UNION
                SELECT f.parent_id, chain.depth + 1
                FROM folders f JOIN chain ON f.id = chain.id
                WHERE f.parent_id IS NOT NULL AND chain.depth < 256
            )
            SELECT folders.* FROM chain JOIN folders ON folders.id = chain.id
            ORDER BY chain.depth
        """, (folder_id,)).fetchall()
        return [Folder.from_row(r) for r in rows]

    def folder_descendant_ids(self, folder_id: str) -> List[str]:
        """The folder itself and every folder below it."""
        rows = self.conn.execute("""
            WITH RECURSIVE tree(id) AS (
                SELECT id FROM folders WHERE id = ?
                UNION
                SELECT f.id FROM folders f JOIN tree ON f.parent_id = tree.id
            )
            SELECT id FROM tree
        """, (folder_id,)).fetchall()
        return [r["id"] for r in rows]

    def move_folder(self, folder_id: str, parent_id: Optional[str], old_path: str, new_path: str) -> None:
        with self.conn:
            self.conn.execute(
                "UPDATE folders SET parent_id = ?, path = ? WHERE id = ?",
                (parent_id, new_path, folder_id),
            )
            self._rewrite_paths(folder_id, old_path, new_path)

    def rename_folder(self, folder_id: str, name: str, old_path: str, new_path: str) -> None:
        with self.conn:
            self.conn.execute(
                "UPDATE folders SET name = ?, path = ? WHERE id = ?",
                (name, new_path, folder_id),
            )
            self._rewrite_paths(folder_id, old_path, new_path)

    def rename_file(self, file_id: str, name: str) -> None:
        with self.conn:
            self.conn.execute("UPDATE files SET name = ? WHERE id = ?", (name, file_id))

    def _rewrite_paths(self, folder_id: str, old_path: str, new_path: str) -> None:
        # materialized path prefix of everything below the folder
        self.conn.execute("""
            UPDATE folders SET path = ? || substr(path, ?)
            WHERE substr(path, 1, ?) = ? AND id != ?
              AND owner_id = (SELECT owner_id FROM folders WHERE id = ?)
        """, (new_path, len(old_path) + 1, len(old_path) + 1, old_path + "/", folder_id, folder_id))

    def detach_file(self, file_id: str) -> None:
        with self.conn:
            self.conn.execute("UPDATE files SET folder_id = NULL WHERE id = ?", (file_id,))

    def set_deleted(self, folder_ids: Iterable[str], file_ids: Iterable[str],
                    deleted: bool, now: Optional[datetime] = None, include_folder_files: bool = True) -> None:
        folder_ids = list(folder_ids)
        file_ids = list(file_ids)
        deleted_at = _ts(now) if deleted else None
        with self.conn:
            if folder_ids:
                marks = ",".join("?" * len(folder_ids))
                self.conn.execute(
                    f"UPDATE folders SET is_deleted = ?, deleted_at = ? WHERE id IN ({marks})",
                    (int(deleted), deleted_at, *folder_ids),
                )
                if include_folder_files:
                    self.conn.execute(
                        f"UPDATE files SET is_deleted = ?, deleted_at = ? WHERE folder_id IN ({marks})",
                        (int(deleted), deleted_at, *folder_ids),
                    )
            if file_ids:
                marks = ",".join("?" * len(file_ids))
                self.conn.execute(
                    f"UPDATE files SET is_deleted = ?, deleted_at = ? WHERE id IN ({marks})",
                    (int(deleted), deleted_at, *file_ids),
                )

    def files_in_folders(self, folder_ids: Iterable[str]) -> List[File]:
        folder_ids = list(folder_ids)
        if not folder_ids:
            return []
        marks = ",".join("?" * len(folder_ids))
        rows = self.conn.execute(
            f"SELECT * FROM files WHERE folder_id IN ({marks})", tuple(folder_ids)
        ).fetchall()
        return [File.from_row(r) for r in rows]

    def purge(self, folder_ids: Iterable[str], file_ids: Iterable[str]) -> None:
        """Hard delete items and every share pointing at them."""
        folder_ids = list(folder_ids)
        file_ids = list(file_ids)
        with self.conn:
            if file_ids:
                marks = ",".join("?" * len(file_ids))
                self.conn.execute(
                    f"DELETE FROM shares WHERE item_type = 'file' AND item_id IN ({marks})", tuple(file_ids)
                )
                self.conn.execute(f"DELETE FROM files WHERE id IN ({marks})", tuple(file_ids))
            if folder_ids:
                marks = ",".join("?" * len(folder_ids))
                self.conn.execute(
                    f"DELETE FROM shares WHERE item_type = 'folder' AND item_id IN ({marks})", tuple(folder_ids)
                )
                # children cascade through the parent_id foreign key
                self.conn.execute(f"DELETE FROM folders WHERE id IN ({marks})", tuple(folder_ids))

    def list_children(self, owner_id: str, folder_id: Optional[str]):
        if folder_id is None:
            folder_rows = self.conn.execute(
                "SELECT * FROM folders WHERE owner_id = ? AND parent_id IS NULL AND is_deleted = 0 ORDER BY name",
                (owner_id,),
            ).fetchall()
            file_rows = self.conn.execute(
                "SELECT * FROM files WHERE owner_id = ? AND folder_id IS NULL AND is_deleted = 0 ORDER BY name",
                (owner_id,),
            ).fetchall()
        else:
            folder_rows = self.conn.execute(
                "SELECT * FROM folders WHERE parent_id = ? AND is_deleted = 0 ORDER BY name", (folder_id,)
            ).fetchall()
            file_rows = self.conn.execute(
                "SELECT * FROM files WHERE folder_id = ? AND is_deleted = 0 ORDER BY name", (folder_id,)
            ).fetchall()
        return [Folder.from_row(r) for r in folder_rows], [File.from_row(r) for r in file_rows]

    def list_trash(self, owner_id: str):
        folder_rows = self.conn.execute(
            "SELECT * FROM folders WHERE owner_id = ? AND is_deleted = 1 ORDER BY deleted_at DESC", (owner_id,)
        ).fetchall()
        file_rows = self.conn.execute(
            "SELECT * FROM files WHERE owner_id = ? AND is_deleted = 1 ORDER BY deleted_at DESC", (owner_id,)
        ).fetchall()
        return [Folder.from_row(r) for r in folder_rows], [File.from_row(r) for r in file_rows]

    # -----------------------------
    # Shares
    # -----------------------------

    def insert_share(self, share: Share) -> Share:
        values = [_db_value(getattr(share, c)) for c in SHARE_COLUMNS]
        try:
            with self.conn:
                self.conn.execute(
                    f"INSERT INTO shares ({', '.join(SHARE_COLUMNS)}) VALUES ({', '.join('?' * len(SHARE_COLUMNS))})",
                    values,
                )
        except sqlite3.IntegrityError as e:
            if "public_link" in str(e):
                logger.warning("Public link collision for share %s", share.id)
                raise ConflictError("Public link already in use, regenerate and retry")
            raise
        return share

    def get_share(self, share_id: str) -> Optional[Share]:
        row = self.conn.execute("SELECT * FROM shares WHERE id = ?", (share_id,)).fetchone()
        return Share.from_row(row)

    def find_shares(self, ref: ItemRef, shared_with_id: str) -> List[Share]:
        """Every grant on ``ref`` to the user, active ones first."""
        rows = self.conn.execute("""
            SELECT * FROM shares
            WHERE item_id = ? AND item_type = ? AND shared_with_id = ?
            ORDER BY is_active DESC, created_at DESC
        """, (ref.id, ref.type.value, shared_with_id)).fetchall()
        return [Share.from_row(r) for r in rows]

    def find_email_invites(self, ref: ItemRef, email: str) -> List[Share]:
        # a share bound to an account belongs to that account, whatever email it carries
        rows = self.conn.execute("""
            SELECT * FROM shares
            WHERE item_id = ? AND item_type = ? AND shared_with_email = ? COLLATE NOCASE
              AND shared_with_id IS NULL
            ORDER BY is_active DESC, created_at DESC
        """, (ref.id, ref.type.value, email)).fetchall()
        return [Share.from_row(r) for r in rows]

    def find_share_by_public_link(self, token: str) -> Optional[Share]:
        row = self.conn.execute("SELECT * FROM shares WHERE public_link = ?", (token,)).fetchone()
        return Share.from_row(row)

    def update_share(self, share_id: str, changes: dict) -> None:
        unknown = set(changes) - SHARE_MUTABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update share columns: {sorted(unknown)}")
        if not changes:
            return

        columns = list(changes)
        assignments = ", ".join(f"{c} = ?" for c in columns) + ", updated_at = ?"
        values = [_db_value(changes[c]) for c in columns] + [_ts(utcnow()), share_id]
        try:
            with self.conn:
                self.conn.execute(f"UPDATE shares SET {assignments} WHERE id = ?", values)
        except sqlite3.IntegrityError as e:
            if "public_link" in str(e):
                logger.warning("Public link collision while updating share %s", share_id)
                raise ConflictError("Public link already in use, regenerate and retry")
            raise

    def increment_share_access(self, share_id: str, now: datetime) -> bool:
        # single statement so concurrent visitors never lose an increment
        with self.conn:
            res = self.conn.execute(
                "UPDATE shares SET access_count = access_count + 1, last_accessed = ? WHERE id = ?",
                (_ts(now), share_id),
            )
        return res.rowcount == 1

    def delete_share(self, share_id: str) -> bool:
        with self.conn:
            res = self.conn.execute("DELETE FROM shares WHERE id = ?", (share_id,))
        return res.rowcount == 1

    def list_shares_for_item(self, ref: ItemRef) -> List[Share]:
        rows = self.conn.execute(
            "SELECT * FROM shares WHERE item_id = ? AND item_type = ? ORDER BY created_at DESC",
            (ref.id, ref.type.value),
        ).fetchall()
        return [Share.from_row(r) for r in rows]

    def list_shares_by_owner(self, owner_id: str) -> List[Share]:
        rows = self.conn.execute(
            "SELECT * FROM shares WHERE owner_id = ? ORDER BY created_at DESC", (owner_id,)
        ).fetchall()
        return [Share.from_row(r) for r in rows]

    def list_shares_for_user(self, user_id: str) -> List[Share]:
        rows = self.conn.execute(
            "SELECT * FROM shares WHERE shared_with_id = ? AND is_active = 1 ORDER BY created_at DESC",
            (user_id,),
        ).fetchall()
        return [Share.from_row(r) for r in rows]
