"""SQLite schema management (code-first approach)."""

import logging

from src.core import db_client


logger = logging.getLogger(__name__)


# Central list of all collections in the schema, in creation order
COLLECTIONS = [
    "users",
    "recurring_templates",
    "tasks",
    "progress_stats",
    "achievements",
    "push_subscriptions",
    "device_tokens",
]


TABLE_SCHEMAS: dict[str, str] = {
    "users": """CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL,
        updated TEXT NOT NULL,
        username TEXT NOT NULL UNIQUE,
        timezone TEXT NOT NULL DEFAULT 'UTC',
        notification_time TEXT NOT NULL DEFAULT '07:00',
        notifications_enabled INTEGER NOT NULL DEFAULT 0
    )""",
    "recurring_templates": """CREATE TABLE IF NOT EXISTS recurring_templates (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL,
        updated TEXT NOT NULL,
        user_id INTEGER NOT NULL REFERENCES users(id),
        title TEXT NOT NULL,
        category TEXT NOT NULL DEFAULT 'personal',
        notes TEXT,
        priority TEXT NOT NULL DEFAULT 'medium',
        recurring_pattern TEXT NOT NULL CHECK (recurring_pattern IN ('daily', 'weekly', 'monthly')),
        day_of_week INTEGER CHECK (day_of_week BETWEEN 0 AND 6),
        day_of_month INTEGER CHECK (day_of_month BETWEEN 1 AND 28),
        active INTEGER NOT NULL DEFAULT 1,
        last_generated_at TEXT
    )""",
    "tasks": """CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL,
        updated TEXT NOT NULL,
        user_id INTEGER NOT NULL REFERENCES users(id),
        title TEXT NOT NULL,
        notes TEXT,
        category TEXT NOT NULL DEFAULT 'personal',
        priority TEXT NOT NULL DEFAULT 'medium',
        completed INTEGER NOT NULL DEFAULT 0,
        completed_at TEXT,
        due_date TEXT,
        is_recurring INTEGER NOT NULL DEFAULT 0,
        recurring_pattern TEXT CHECK (recurring_pattern IN ('daily', 'weekly', 'monthly')),
        template_id INTEGER REFERENCES recurring_templates(id) ON DELETE CASCADE,
        scheduled_for TEXT
    )""",
    "progress_stats": """CREATE TABLE IF NOT EXISTS progress_stats (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL,
        updated TEXT NOT NULL,
        user_id INTEGER NOT NULL UNIQUE REFERENCES users(id),
        tasks_chomped INTEGER NOT NULL DEFAULT 0,
        current_streak INTEGER NOT NULL DEFAULT 0,
        longest_streak INTEGER NOT NULL DEFAULT 0,
        last_active_date TEXT,
        happiness_level INTEGER NOT NULL DEFAULT 50 CHECK (happiness_level BETWEEN 0 AND 100)
    )""",
    "achievements": """CREATE TABLE IF NOT EXISTS achievements (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL,
        updated TEXT NOT NULL,
        user_id INTEGER NOT NULL REFERENCES users(id),
        code TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        icon TEXT NOT NULL DEFAULT '',
        type TEXT NOT NULL CHECK (
            type IN ('tasks_chomped', 'streak', 'happiness', 'monster_unlock', 'monster_unlock_streak')
        ),
        requirement INTEGER NOT NULL,
        unlocked_at TEXT,
        UNIQUE(user_id, code)
    )""",
    "push_subscriptions": """CREATE TABLE IF NOT EXISTS push_subscriptions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL,
        updated TEXT NOT NULL,
        user_id INTEGER NOT NULL REFERENCES users(id),
        endpoint TEXT NOT NULL UNIQUE,
        p256dh TEXT NOT NULL,
        auth TEXT NOT NULL
    )""",
    "device_tokens": """CREATE TABLE IF NOT EXISTS device_tokens (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL,
        updated TEXT NOT NULL,
        user_id INTEGER NOT NULL REFERENCES users(id),
        token TEXT NOT NULL UNIQUE,
        platform TEXT
    )""",
}


INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_user_id ON tasks (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_template_id ON tasks (template_id, completed)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_due_date ON tasks (due_date)",
    "CREATE INDEX IF NOT EXISTS idx_templates_user_id ON recurring_templates (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_templates_active ON recurring_templates (active)",
    "CREATE INDEX IF NOT EXISTS idx_achievements_user_id ON achievements (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_push_subscriptions_user_id ON push_subscriptions (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_device_tokens_user_id ON device_tokens (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_users_notifications ON users (notifications_enabled)",
]


async def init_db(*, db_path: str | None = None) -> None:
    """Create all tables and indexes if they do not exist yet."""
    conn = await db_client.get_connection(db_path=db_path)

    for collection in COLLECTIONS:
        await conn.execute(TABLE_SCHEMAS[collection])
        logger.debug("Ensured table", extra={"collection": collection})

    for index in INDEXES:
        await conn.execute(index)

    await conn.commit()
    logger.info("Schema initialized", extra={"tables": len(COLLECTIONS), "indexes": len(INDEXES)})
