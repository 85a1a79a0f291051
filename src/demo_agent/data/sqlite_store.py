import uuid
from datetime import UTC, datetime

import aiosqlite

from ..config import DEFAULT_CONVERSATION_TITLE

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL DEFAULT '',
    experiment_id TEXT,
    html_content TEXT,
    css_content TEXT,
    js_content TEXT,
    title TEXT,
    is_conversation_root INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id);
CREATE INDEX IF NOT EXISTS idx_messages_experiment ON messages(experiment_id);
"""

MESSAGE_COLUMNS = (
    "id, conversation_id, role, content, experiment_id, html_content, css_content, "
    "js_content, title, is_conversation_root, created_at, updated_at"
)

# Columns a partial update may touch; everything else is owned by the store.
UPDATABLE_FIELDS = frozenset(
    {"content", "experiment_id", "html_content", "css_content", "js_content", "title"}
)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _uuid() -> str:
    return str(uuid.uuid4())


def _message_from_row(row: aiosqlite.Row) -> dict:
    message = dict(row)
    message["is_conversation_root"] = bool(message["is_conversation_root"])
    return message


def _conversation_from_row(row: aiosqlite.Row) -> dict:
    return {
        "id": row["conversation_id"],
        "title": row["title"] or DEFAULT_CONVERSATION_TITLE,
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


class SQLiteStore:
    """Message store where each conversation is anchored by a root message row."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._db: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Return the database connection, raising if not initialized."""
        if self._db is None:
            raise RuntimeError("SQLiteStore not initialized; call initialize() first")
        return self._db

    async def initialize(self) -> None:
        self._db = await aiosqlite.connect(self._path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA_SQL)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()

    # --- Conversations ---

    async def create_conversation(self, title: str = DEFAULT_CONVERSATION_TITLE) -> dict:
        cid = _uuid()
        now = _now()
        await self.db.execute(
            f"INSERT INTO messages ({MESSAGE_COLUMNS}) VALUES (?, ?, 'assistant', '', NULL, NULL, NULL, NULL, ?, 1, ?, ?)",
            (cid, cid, title, now, now),
        )
        await self.db.commit()
        return {"id": cid, "title": title, "created_at": now, "updated_at": now}

    async def list_conversations(self) -> list[dict]:
        cursor = await self.db.execute(
            "SELECT conversation_id, title, created_at, updated_at FROM messages "
            "WHERE is_conversation_root = 1 ORDER BY updated_at DESC"
        )
        rows = await cursor.fetchall()
        return [_conversation_from_row(r) for r in rows]

    async def get_conversation(self, conversation_id: str) -> dict | None:
        cursor = await self.db.execute(
            "SELECT conversation_id, title, created_at, updated_at FROM messages "
            "WHERE conversation_id = ? AND is_conversation_root = 1",
            (conversation_id,),
        )
        row = await cursor.fetchone()
        return _conversation_from_row(row) if row else None

    async def update_conversation_title(self, conversation_id: str, title: str) -> bool:
        cursor = await self.db.execute(
            "UPDATE messages SET title = ?, updated_at = ? "
            "WHERE conversation_id = ? AND is_conversation_root = 1",
            (title, _now(), conversation_id),
        )
        await self.db.commit()
        return cursor.rowcount > 0

    async def touch_conversation(self, conversation_id: str) -> None:
        await self.db.execute(
            "UPDATE messages SET updated_at = ? WHERE conversation_id = ? AND is_conversation_root = 1",
            (_now(), conversation_id),
        )
        await self.db.commit()

    async def delete_conversation(self, conversation_id: str) -> bool:
        cursor = await self.db.execute(
            "DELETE FROM messages WHERE conversation_id = ?", (conversation_id,)
        )
        await self.db.commit()
        return cursor.rowcount > 0

    # --- Messages ---

    async def add_message(
        self,
        conversation_id: str,
        role: str,
        content: str = "",
        experiment_id: str | None = None,
        html_content: str | None = None,
        css_content: str | None = None,
        js_content: str | None = None,
    ) -> dict:
        mid = _uuid()
        now = _now()
        await self.db.execute(
            f"INSERT INTO messages ({MESSAGE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, NULL, 0, ?, ?)",
            (
                mid,
                conversation_id,
                role,
                content,
                experiment_id,
                html_content,
                css_content,
                js_content,
                now,
                now,
            ),
        )
        await self.db.commit()
        await self.touch_conversation(conversation_id)
        return {
            "id": mid,
            "conversation_id": conversation_id,
            "role": role,
            "content": content,
            "experiment_id": experiment_id,
            "html_content": html_content,
            "css_content": css_content,
            "js_content": js_content,
            "title": None,
            "is_conversation_root": False,
            "created_at": now,
            "updated_at": now,
        }

    async def get_message(self, message_id: str) -> dict | None:
        cursor = await self.db.execute(
            f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE id = ?", (message_id,)
        )
        row = await cursor.fetchone()
        return _message_from_row(row) if row else None

    async def get_messages(self, conversation_id: str) -> list[dict]:
        """Return every row of the conversation, root included, in insertion order."""
        cursor = await self.db.execute(
            f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE conversation_id = ? ORDER BY created_at, rowid",
            (conversation_id,),
        )
        rows = await cursor.fetchall()
        return [_message_from_row(r) for r in rows]

    async def update_message(self, message_id: str, fields: dict) -> dict | None:
        """Apply a partial update by id; columns not named in ``fields`` are left untouched."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update message fields: {', '.join(sorted(unknown))}")
        if not fields:
            return await self.get_message(message_id)

        columns = sorted(fields)
        assignments = ", ".join(f"{c} = ?" for c in columns)
        params = [fields[c] for c in columns] + [_now(), message_id]
        cursor = await self.db.execute(
            f"UPDATE messages SET {assignments}, updated_at = ? WHERE id = ?", params
        )
        await self.db.commit()
        if cursor.rowcount == 0:
            return None

        message = await self.get_message(message_id)
        if message and not message["is_conversation_root"]:
            await self.touch_conversation(message["conversation_id"])
        return message

    # --- Experiments ---

    async def get_experiment(self, experiment_id: str) -> dict | None:
        cursor = await self.db.execute(
            "SELECT id, conversation_id, experiment_id, title, html_content FROM messages "
            "WHERE experiment_id = ? ORDER BY created_at LIMIT 1",
            (experiment_id,),
        )
        row = await cursor.fetchone()
        if not row:
            return None
        return {
            "experiment_id": row["experiment_id"],
            "message_id": row["id"],
            "conversation_id": row["conversation_id"],
            "title": row["title"],
            "html_content": row["html_content"],
        }
