import sqlite3
from pathlib import Path
from typing import Optional, Union

from clouddrive import config


def get_db(db_path: Optional[Union[str, Path]] = None) -> sqlite3.Connection:
    path = Path(db_path or config.DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)

    # autocommit off for writes wrapped in `with conn:`; busy timeout so
    # concurrent requests queue on the write lock instead of failing
    conn = sqlite3.connect(str(path), timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: Optional[Union[str, Path]] = None) -> None:
    conn = get_db(db_path)
    try:
        create_schema(conn)
    finally:
        conn.close()


def create_schema(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()

    cur.execute("""
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'user',
        tier TEXT NOT NULL DEFAULT 'free',
        storage_used INTEGER NOT NULL DEFAULT 0,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        CHECK (role IN ('user', 'admin')),
        CHECK (tier IN ('free', 'premium')),
        CHECK (storage_used >= 0)
    )
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS folders (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT DEFAULT NULL,
        path TEXT NOT NULL,
        parent_id TEXT DEFAULT NULL REFERENCES folders(id) ON DELETE CASCADE,
        owner_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        color TEXT DEFAULT NULL,
        is_deleted INTEGER NOT NULL DEFAULT 0,
        deleted_at DATETIME DEFAULT NULL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS files (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        original_name TEXT NOT NULL,
        mime_type TEXT NOT NULL,
        size INTEGER NOT NULL DEFAULT 0,
        folder_id TEXT DEFAULT NULL REFERENCES folders(id) ON DELETE CASCADE,
        owner_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        storage_key TEXT UNIQUE NOT NULL,
        is_deleted INTEGER NOT NULL DEFAULT 0,
        deleted_at DATETIME DEFAULT NULL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        CHECK (size >= 0)
    )
    """)

    # item_id is polymorphic (file or folder), so there is no foreign key on
    # it; purging an item removes its shares explicitly
    cur.execute("""
    CREATE TABLE IF NOT EXISTS shares (
        id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        item_id TEXT NOT NULL,
        item_type TEXT NOT NULL,
        shared_with_id TEXT DEFAULT NULL REFERENCES users(id) ON DELETE SET NULL,
        shared_with_email TEXT DEFAULT NULL,
        permission TEXT NOT NULL DEFAULT 'view',
        is_public INTEGER NOT NULL DEFAULT 0,
        public_link TEXT UNIQUE DEFAULT NULL,
        password TEXT DEFAULT NULL,
        expires_at DATETIME DEFAULT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        allow_download INTEGER NOT NULL DEFAULT 1,
        allow_edit INTEGER NOT NULL DEFAULT 0,
        access_count INTEGER NOT NULL DEFAULT 0,
        last_accessed DATETIME DEFAULT NULL,
        notify_on_access INTEGER NOT NULL DEFAULT 0,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        CHECK (item_type IN ('file', 'folder')),
        CHECK (permission IN ('view', 'edit', 'download'))
    )
    """)

    cur.execute("CREATE INDEX IF NOT EXISTS idx_folders_owner_parent ON folders(owner_id, parent_id)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_files_owner_folder ON files(owner_id, folder_id)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_shares_item ON shares(item_id, item_type)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_shares_owner ON shares(owner_id)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_shares_shared_with ON shares(shared_with_id)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_shares_shared_with_email ON shares(shared_with_email)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_shares_expires_at ON shares(expires_at)")

    conn.commit()
