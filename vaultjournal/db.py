# -*- coding: utf-8 -*-
"""SQLite-backed key/value persistence for the journal and vault identity."""
from __future__ import annotations

from typing import Optional
import json
import logging
import os

import aiosqlite

from .errors import ValidationError
from .models import JournalDocument, VaultIdentity, utc_now_iso

logger = logging.getLogger(__name__)

DB_PATH = os.environ.get("VAULTJOURNAL_DB", "vaultjournal.sqlite3")

IDENTITY_KEY = "journal_vault_config"
DOCUMENT_KEY = "journal_data"


# ---------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS kv (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""


class LocalStore:
    """Opaque string store plus typed helpers for the two records it holds."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or DB_PATH

    async def init(self) -> None:
        """Create the table if it doesn't exist."""
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA_SQL)
            await db.commit()

    # -----------------------------------------------------------------
    # Raw key/value
    # -----------------------------------------------------------------

    async def get_value(self, key: str) -> Optional[str]:
        async with aiosqlite.connect(self.path) as db:
            cur = await db.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = await cur.fetchone()
            await cur.close()
            return row[0] if row else None

    async def set_value(self, key: str, value: str) -> None:
        async with aiosqlite.connect(self.path) as db:
            await db.execute(
                """
                INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE
                   SET value = excluded.value,
                       updated_at = excluded.updated_at
                """,
                (key, value, utc_now_iso()),
            )
            await db.commit()

    async def delete_values(self, *keys: str) -> None:
        async with aiosqlite.connect(self.path) as db:
            await db.executemany("DELETE FROM kv WHERE key = ?", [(k,) for k in keys])
            await db.commit()

    # -----------------------------------------------------------------
    # Journal document
    # -----------------------------------------------------------------

    async def get_document(self) -> Optional[JournalDocument]:
        """Return the stored document, or None when absent or unreadable."""
        raw = await self.get_value(DOCUMENT_KEY)
        if raw is None:
            return None
        try:
            return JournalDocument.from_json(raw)
        except ValidationError as exc:
            logger.warning("Ignoring unreadable local journal data: %s", exc)
            return None

    async def save_document(self, doc: JournalDocument) -> None:
        await self.set_value(DOCUMENT_KEY, doc.to_json())

    # -----------------------------------------------------------------
    # Vault identity
    # -----------------------------------------------------------------

    async def get_identity(self) -> Optional[VaultIdentity]:
        raw = await self.get_value(IDENTITY_KEY)
        if raw is None:
            return None
        try:
            return VaultIdentity.from_dict(json.loads(raw))
        except ValueError as exc:
            logger.warning("Ignoring unreadable vault config: %s", exc)
            return None

    async def save_identity(self, identity: VaultIdentity) -> None:
        await self.set_value(IDENTITY_KEY, json.dumps(identity.to_dict()))

    async def clear(self) -> None:
        """Remove the identity and the journal document."""
        await self.delete_values(IDENTITY_KEY, DOCUMENT_KEY)
