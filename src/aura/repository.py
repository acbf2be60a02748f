"""SQLite-backed store for the persisted conversation state."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import aiosqlite
from pydantic import ValidationError

from .schemas.state import ConversationState

logger = logging.getLogger(__name__)

STATE_KEY = "aura_user_state"


class StateRepository:
    """Persist the whole conversation state as one record under one key.

    Every save overwrites the record in full; saves are serialized so two
    mutations never race each other.
    """

    def __init__(self, database_path: Path, *, default_name: str = "Amiga"):
        self._path = database_path
        self._default_name = default_name
        self._connection: aiosqlite.Connection | None = None
        self._save_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Open the SQLite connection and ensure the table exists."""

        if self._connection is not None:
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self._path)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.execute("PRAGMA journal_mode=WAL;")
        await self._connection.executescript(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
        await self._connection.commit()

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    def _empty_state(self) -> ConversationState:
        return ConversationState(name=self._default_name)

    async def load(self) -> ConversationState:
        """Return the stored state, or a fresh one when nothing usable exists."""

        assert self._connection is not None
        cursor = await self._connection.execute(
            "SELECT value FROM kv_store WHERE key = ?", (STATE_KEY,)
        )
        row = await cursor.fetchone()
        await cursor.close()

        if row is None:
            logger.info("No stored conversation state; starting fresh")
            return self._empty_state()

        try:
            state = ConversationState.model_validate(json.loads(row["value"]))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Stored conversation state is invalid, starting fresh: %s", exc)
            return self._empty_state()

        logger.info(
            "Loaded conversation state: %d message(s), %d mood entr(ies)",
            len(state.chat_history),
            len(state.mood_history),
        )
        return state

    async def save(self, state: ConversationState) -> None:
        """Overwrite the stored record with ``state``."""

        assert self._connection is not None
        async with self._save_lock:
            serialized = json.dumps(state.to_record(), ensure_ascii=False)
            await self._connection.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (STATE_KEY, serialized),
            )
            await self._connection.commit()
        logger.debug("Saved conversation state (%d bytes)", len(serialized))


__all__ = ["STATE_KEY", "StateRepository"]
