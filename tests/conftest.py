"""
Shared pytest fixtures for vaultjournal tests.

Provides an in-memory stand-in for the sync relay so orchestrator tests never
touch the network.
"""

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from vaultjournal.db import LocalStore
from vaultjournal.errors import TransportError
from vaultjournal.models import Entry, JournalDocument, Metadata, VaultIdentity
from vaultjournal.remote import RemoteBlob

CREATED = "2024-01-01T00:00:00.000Z"
VAULT_ID = "3f2b8c1e-9d4a-4e6b-8a1f-2c3d4e5f6a7b"


def make_entry(date: str, updated_at: str, *, title: str = "", created_at: str = CREATED, **fields) -> Entry:
    return Entry(
        id=fields.pop("id", f"id-{date}"),
        date=date,
        title=title,
        created_at=created_at,
        updated_at=updated_at,
        **fields,
    )


def make_doc(*entries: Entry, device_id: str = "device", last_sync: str = CREATED) -> JournalDocument:
    return JournalDocument(
        entries={e.date: e for e in entries},
        metadata=Metadata(last_sync=last_sync, device_id=device_id),
    )


class FakeRemote:
    """Relay double: keeps blobs in a dict and records every call."""

    def __init__(self) -> None:
        self.blobs: Dict[str, str] = {}
        self.calls: List[Tuple[str, str]] = []
        self.fail_puts = 0
        self.fetch_error: Optional[Exception] = None
        self.fetch_gate: Optional[asyncio.Event] = None
        self.delete_error: Optional[Exception] = None
        self.closed = False

    async def fetch_blob(self, vault_id: str) -> RemoteBlob:
        self.calls.append(("fetch", vault_id))
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        return RemoteBlob(data=self.blobs.get(vault_id))

    async def put_blob(self, vault_id: str, data: str) -> RemoteBlob:
        self.calls.append(("put", vault_id))
        if self.fail_puts:
            self.fail_puts -= 1
            raise TransportError("connection reset")
        self.blobs[vault_id] = data
        return RemoteBlob(data=None, timestamp="2024-01-01T00:00:00Z")

    async def delete_blob(self, vault_id: str) -> None:
        self.calls.append(("delete", vault_id))
        if self.delete_error is not None:
            raise self.delete_error
        self.blobs.pop(vault_id, None)

    async def aclose(self) -> None:
        self.closed = True

    @property
    def puts(self) -> int:
        return sum(1 for verb, _ in self.calls if verb == "put")


@pytest.fixture
def store(tmp_path):
    return LocalStore(str(tmp_path / "journal.sqlite3"))


@pytest.fixture
def fake_remote():
    return FakeRemote()


@pytest.fixture
def remote_identity():
    return VaultIdentity(
        vault_id=VAULT_ID,
        created_at=CREATED,
        endpoint="https://sync.example.com",
        api_key="secret-key",
    )
