"""
SQLite storage for contexts, messages, profiles and provider credentials.
Single portable file. Implements both store interfaces the core uses.

Provider keys are stored in cleartext.
TODO: encrypt the *_api_key columns and user_api_keys.api_key at rest.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from switchboard.errors import ContextAccessDenied
from switchboard.routing import Provider
from switchboard.storage.base import CredentialStore, MessageStore
from switchboard.storage.models import Context, Message, UserProfile

logger = logging.getLogger(__name__)

CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS contexts (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT 'New Chat',
    selected_model TEXT DEFAULT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    context_id TEXT NOT NULL,
    role TEXT NOT NULL CHECK (role IN ('system', 'user', 'assistant')),
    content TEXT NOT NULL,
    created_at TEXT NOT NULL,
    user_id TEXT DEFAULT NULL,
    model TEXT DEFAULT '',
    provider TEXT DEFAULT '',
    latency_ms REAL DEFAULT NULL,
    cost_usd REAL DEFAULT NULL,
    FOREIGN KEY (context_id) REFERENCES contexts(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS user_profiles (
    user_id TEXT PRIMARY KEY,
    preferred_name TEXT DEFAULT NULL,
    occupation TEXT DEFAULT NULL,
    chat_traits TEXT DEFAULT NULL,
    openai_api_key TEXT DEFAULT NULL,
    anthropic_api_key TEXT DEFAULT NULL,
    google_gemini_api_key TEXT DEFAULT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS user_api_keys (
    user_id TEXT NOT NULL,
    provider TEXT NOT NULL,
    api_key TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (user_id, provider)
);

CREATE TABLE IF NOT EXISTS user_model_preferences (
    user_id TEXT NOT NULL,
    model_id TEXT NOT NULL,
    enabled BOOLEAN NOT NULL DEFAULT 1,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (user_id, model_id)
);

CREATE INDEX IF NOT EXISTS idx_messages_context
    ON messages(context_id);
CREATE INDEX IF NOT EXISTS idx_contexts_user
    ON contexts(user_id);
"""

# Direct-provider keys live on the profile row; OpenRouter lives in user_api_keys
PROFILE_KEY_COLUMNS: dict[Provider, str | None] = {
    Provider.OPENAI: "openai_api_key",
    Provider.ANTHROPIC: "anthropic_api_key",
    Provider.GOOGLE: "google_gemini_api_key",
    Provider.OPENROUTER: None,
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteStore(CredentialStore, MessageStore):
    """Thread-safe SQLite store (one connection per operation)."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        with self._connect() as conn:
            conn.executescript(CREATE_TABLES)
        logger.info("SQLite store initialized at %s", self.db_path)

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ─ Contexts ──────────────────────────────────────────────────────────

    def create_context(self, user_id: str, title: str = "New Chat",
                       selected_model: str | None = None) -> Context:
        ctx = Context(user_id=user_id, title=title, selected_model=selected_model)
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO contexts (id, user_id, title, selected_model, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (ctx.id, ctx.user_id, ctx.title, ctx.selected_model, ctx.created_at, ctx.updated_at),
            )
        return ctx

    def ensure_context(self, context_id: str, user_id: str | None, created_at: str):
        """Create the context record if it doesn't exist."""
        with self._connect() as conn:
            conn.execute(
                """INSERT OR IGNORE INTO contexts (id, user_id, created_at, updated_at)
                   VALUES (?, ?, ?, ?)""",
                (context_id, user_id or "", created_at, created_at),
            )

    def get_context(self, context_id: str) -> Context | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM contexts WHERE id = ?", (context_id,)).fetchone()
        if not row:
            return None
        return Context(**dict(row))

    def set_selected_model(self, context_id: str, model_id: str):
        with self._connect() as conn:
            conn.execute(
                "UPDATE contexts SET selected_model = ?, updated_at = ? WHERE id = ?",
                (model_id, _now(), context_id),
            )

    def delete_context(self, context_id: str) -> bool:
        """Delete a context. Its messages go with it."""
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM contexts WHERE id = ?", (context_id,))
        return cur.rowcount > 0

    # ─ Messages ──────────────────────────────────────────────────────────

    def append_message(
        self,
        context_id: str,
        role: str,
        content: str,
        *,
        user_id: str | None = None,
        model: str = "",
        provider: str = "",
        latency_ms: float | None = None,
        cost_usd: float | None = None,
    ) -> Message:
        msg = Message(
            context_id=context_id, role=role, content=content, user_id=user_id,
            model=model, provider=str(provider), latency_ms=latency_ms, cost_usd=cost_usd,
        )
        self.ensure_context(context_id, user_id, msg.created_at)
        with self._connect() as conn:
            owner = conn.execute(
                "SELECT user_id FROM contexts WHERE id = ?", (context_id,),
            ).fetchone()["user_id"]
            if user_id and owner and owner != user_id:
                logger.warning("User %s tried to write to context %s owned by %s",
                               user_id, context_id, owner)
                raise ContextAccessDenied(context_id)
            conn.execute(
                """INSERT INTO messages
                   (id, context_id, role, content, created_at, user_id, model, provider,
                    latency_ms, cost_usd)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (msg.id, msg.context_id, msg.role, msg.content, msg.created_at, msg.user_id,
                 msg.model, msg.provider, msg.latency_ms, msg.cost_usd),
            )
            conn.execute(
                "UPDATE contexts SET updated_at = ? WHERE id = ?",
                (msg.created_at, context_id),
            )
        logger.debug("Stored message %s (role=%s, context=%s)", msg.id, role, context_id)
        return msg

    def get_messages(self, context_id: str) -> list[Message]:
        """All messages for a context, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM messages WHERE context_id = ? ORDER BY created_at, rowid",
                (context_id,),
            ).fetchall()
        return [Message(**dict(r)) for r in rows]

    # ─ Profiles and credentials ──────────────────────────────────────────

    def _ensure_profile(self, conn, user_id: str):
        now = _now()
        conn.execute(
            "INSERT OR IGNORE INTO user_profiles (user_id, created_at, updated_at) VALUES (?, ?, ?)",
            (user_id, now, now),
        )

    def get_profile_credentials(self, user_id: str) -> dict:
        with self._connect() as conn:
            row = conn.execute(
                """SELECT openai_api_key, anthropic_api_key, google_gemini_api_key
                   FROM user_profiles WHERE user_id = ?""",
                (user_id,),
            ).fetchone()
        if not row:
            return {}
        return {
            provider.value: row[column]
            for provider, column in PROFILE_KEY_COLUMNS.items()
            if column is not None and row[column] is not None
        }

    def get_aggregator_credential(self, user_id: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT api_key FROM user_api_keys WHERE user_id = ? AND provider = ?",
                (user_id, Provider.OPENROUTER.value),
            ).fetchone()
        return row["api_key"] if row else None

    def set_credential(self, user_id: str, provider: Provider, api_key: str | None):
        """Store (or with api_key=None, clear) one provider key for a user."""
        provider = Provider(provider)
        column = PROFILE_KEY_COLUMNS[provider]
        now = _now()
        with self._connect() as conn:
            if column is not None:
                self._ensure_profile(conn, user_id)
                # column comes from the fixed table above, never from input
                conn.execute(
                    f"UPDATE user_profiles SET {column} = ?, updated_at = ? WHERE user_id = ?",
                    (api_key, now, user_id),
                )
            elif api_key is None:
                conn.execute(
                    "DELETE FROM user_api_keys WHERE user_id = ? AND provider = ?",
                    (user_id, provider.value),
                )
            else:
                conn.execute(
                    """INSERT INTO user_api_keys (user_id, provider, api_key, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?)
                       ON CONFLICT (user_id, provider)
                       DO UPDATE SET api_key = excluded.api_key, updated_at = excluded.updated_at""",
                    (user_id, provider.value, api_key, now, now),
                )
        logger.info("%s key for user %s: %s", provider.title, user_id,
                    "cleared" if api_key is None else "updated")

    def get_profile(self, user_id: str) -> UserProfile | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT preferred_name, occupation, chat_traits FROM user_profiles WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if not row:
            return None
        traits = json.loads(row["chat_traits"]) if row["chat_traits"] else []
        return UserProfile(
            user_id=user_id,
            preferred_name=row["preferred_name"],
            occupation=row["occupation"],
            chat_traits=traits,
        )

    def update_profile(self, user_id: str, preferred_name: str | None = None,
                       occupation: str | None = None, chat_traits: list[str] | None = None):
        with self._connect() as conn:
            self._ensure_profile(conn, user_id)
            conn.execute(
                """UPDATE user_profiles
                   SET preferred_name = ?, occupation = ?, chat_traits = ?, updated_at = ?
                   WHERE user_id = ?""",
                (preferred_name, occupation,
                 json.dumps(chat_traits) if chat_traits else None, _now(), user_id),
            )

    # ─ Model visibility preferences ──────────────────────────────────────

    def get_model_preferences(self, user_id: str) -> dict[str, bool]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT model_id, enabled FROM user_model_preferences WHERE user_id = ?",
                (user_id,),
            ).fetchall()
        return {r["model_id"]: bool(r["enabled"]) for r in rows}

    def set_model_preference(self, user_id: str, model_id: str, enabled: bool):
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO user_model_preferences (user_id, model_id, enabled, updated_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT (user_id, model_id)
                   DO UPDATE SET enabled = excluded.enabled, updated_at = excluded.updated_at""",
                (user_id, model_id, bool(enabled), _now()),
            )
