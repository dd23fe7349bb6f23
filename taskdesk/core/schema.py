"""SQLite schema management (code-first approach)."""

import logging

import aiosqlite


logger = logging.getLogger(__name__)


# Central list of all collections in the schema, in dependency order
COLLECTIONS = [
    "users",
    "tasks",
    "notifications",
]


_TABLES: dict[str, str] = {
    "users": """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            email TEXT NOT NULL UNIQUE,
            role TEXT NOT NULL DEFAULT 'viewer' CHECK (role IN ('admin', 'editor', 'viewer')),
            can_view_all_tasks INTEGER NOT NULL DEFAULT 0,
            created TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
    "tasks": """
        CREATE TABLE IF NOT EXISTS tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            notes TEXT NOT NULL DEFAULT '',
            assigned_user_id INTEGER REFERENCES users (id) ON DELETE SET NULL,
            deadline TEXT NOT NULL,
            start_date TEXT,
            frequency TEXT NOT NULL DEFAULT 'one_time',
            status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'in_progress', 'completed')),
            priority TEXT NOT NULL DEFAULT 'normal' CHECK (priority IN ('normal', 'urgent')),
            checklist TEXT NOT NULL DEFAULT '[]',
            is_archived INTEGER NOT NULL DEFAULT 0,
            is_pinned INTEGER NOT NULL DEFAULT 0,
            overdue_notified INTEGER NOT NULL DEFAULT 0,
            revision INTEGER NOT NULL DEFAULT 0,
            created TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
    "notifications": """
        CREATE TABLE IF NOT EXISTS notifications (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            recipient_id INTEGER NOT NULL REFERENCES users (id) ON DELETE CASCADE,
            message TEXT NOT NULL,
            is_read INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
}

_INDEXES: list[str] = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_overdue ON tasks (overdue_notified, status, deadline)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_assigned ON tasks (assigned_user_id)",
    "CREATE INDEX IF NOT EXISTS idx_notifications_recipient ON notifications (recipient_id, is_read)",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """Create every table and index that does not exist yet."""
    for collection in COLLECTIONS:
        await conn.execute(_TABLES[collection])
        logger.debug("Ensured table", extra={"collection": collection})

    for index in _INDEXES:
        await conn.execute(index)

    await conn.commit()
    logger.info("Schema initialized", extra={"collections": COLLECTIONS})
