# -*- coding: utf-8 -*-
"""Session state machine tying cipher, merge, change detection and the queue.

    locked -> unlocking -> merging -> unlocked -> locked

Unlock downloads and decrypts the remote blob (unless offline), merges it
into the local document and persists the result. While unlocked, every save
that changes the document is encrypted and handed to the sync queue.
Transport failures only ever flip the ``offline`` flag; decryption failures
abort the unlock.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from functools import partial
from typing import Callable, Dict, Optional, Tuple

from . import crypto
from .db import LocalStore
from .errors import (
    AuthorizationError,
    ConfigurationError,
    StateError,
    TransportError,
    ValidationError,
)
from .fingerprint import ChangeDetector, fingerprint
from .merge import merge
from .models import (
    Entry,
    JournalDocument,
    VaultIdentity,
    utc_now_iso,
    validate_date_key,
    validate_vault_id,
)
from .remote import DEFAULT_TIMEOUT, BlobStoreClient, resolve_api_key
from .sync_queue import DEFAULT_DEBOUNCE_SECONDS, SyncQueue

logger = logging.getLogger(__name__)

OFFLINE_MESSAGE = "Offline - changes will sync when online"

RemoteFactory = Callable[[VaultIdentity], Optional[BlobStoreClient]]


class SyncState(str, Enum):
    LOCKED = "locked"
    UNLOCKING = "unlocking"
    MERGING = "merging"
    UNLOCKED = "unlocked"


@dataclass
class SyncStatus:
    """Snapshot for status displays."""

    state: SyncState
    offline: bool
    message: Optional[str]
    queued: int
    syncing: bool


def default_remote_factory(
    identity: VaultIdentity, *, timeout: float = DEFAULT_TIMEOUT
) -> Optional[BlobStoreClient]:
    """HTTP client for the identity's endpoint, or None for a local-only vault."""
    if not identity.endpoint:
        return None
    return BlobStoreClient(identity.endpoint, identity.api_key, timeout=timeout)


class SyncOrchestrator:
    """One vault session. Not reentrant: a second unlock while one runs fails."""

    def __init__(
        self,
        store: LocalStore,
        *,
        remote_factory: Optional[RemoteFactory] = None,
        is_online: Optional[Callable[[], bool]] = None,
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
        request_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.store = store
        self._remote_factory = remote_factory or partial(default_remote_factory, timeout=request_timeout)
        self._is_online = is_online or (lambda: True)
        self.queue = SyncQueue(self._upload, debounce=debounce)
        self.detector = ChangeDetector(store.get_document)

        self.state = SyncState.LOCKED
        self.offline = False
        self.message: Optional[str] = None
        self.identity: Optional[VaultIdentity] = None
        self.document: Optional[JournalDocument] = None
        self._remote: Optional[BlobStoreClient] = None
        self._password: Optional[str] = None

    @classmethod
    def from_config(cls, cfg: Dict[str, object], store: LocalStore) -> "SyncOrchestrator":
        offline = bool(cfg.get("offline", False))
        return cls(
            store,
            is_online=lambda: not offline,
            debounce=float(cfg.get("debounce_seconds", DEFAULT_DEBOUNCE_SECONDS)),
            request_timeout=float(cfg.get("request_timeout", DEFAULT_TIMEOUT)),
        )

    # -----------------------------------------------------------------
    # Introspection
    # -----------------------------------------------------------------

    @property
    def status(self) -> SyncStatus:
        queue = self.queue.status()
        return SyncStatus(
            state=self.state,
            offline=self.offline,
            message=self.message,
            queued=queue["queued"],
            syncing=queue["syncing"],
        )

    @property
    def is_unlocked(self) -> bool:
        return self.state is SyncState.UNLOCKED

    # -----------------------------------------------------------------
    # Vault setup
    # -----------------------------------------------------------------

    async def load(self) -> Optional[VaultIdentity]:
        """Read the persisted vault identity (None on first run)."""
        await self.store.init()
        identity = await self.store.get_identity()
        await self._bind(identity)
        return identity

    async def create_vault(
        self, endpoint: Optional[str] = None, api_key: Optional[str] = None
    ) -> VaultIdentity:
        """Start a brand new vault with an empty journal. Unlock comes next."""
        self._require_state(SyncState.LOCKED)
        identity = VaultIdentity(
            vault_id=crypto.new_vault_id(),
            created_at=utc_now_iso(),
            endpoint=endpoint or None,
            api_key=api_key or None,
        )
        await self.store.init()
        self.queue.clear()
        self.detector.reset()
        await self._bind(identity)
        await self.store.save_identity(identity)
        await self.store.save_document(JournalDocument.empty())
        logger.info("Created vault %s (remote=%s)", identity.vault_id, identity.has_remote)
        return identity

    async def setup_existing_vault(
        self,
        vault_id: str,
        password: str,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> JournalDocument:
        """Attach this device to a vault created elsewhere and unlock it.

        A missing or rejected credential is a ConfigurationError here, not
        an offline condition: the user has to fix the settings.
        """
        self._require_state(SyncState.LOCKED)
        validate_vault_id(vault_id)
        if endpoint and not resolve_api_key(api_key):
            raise ConfigurationError("An API key is required to connect to the sync server")

        identity = VaultIdentity(
            vault_id=vault_id,
            created_at=utc_now_iso(),
            endpoint=endpoint or None,
            api_key=api_key or None,
        )
        await self.store.init()
        self.queue.clear()
        self.detector.reset()
        await self._bind(identity)

        self.state = SyncState.UNLOCKING
        try:
            try:
                remote_doc, _ = await self._download(password, strict_auth=True)
            except AuthorizationError as exc:
                raise ConfigurationError(f"Sync server rejected the credential: {exc}") from exc

            self.state = SyncState.MERGING
            await self.store.save_identity(identity)
            if remote_doc is not None:
                doc = remote_doc
                doc.metadata.last_sync = utc_now_iso()
                self.detector.mark_synced(doc)
            else:
                doc = await self.store.get_document() or JournalDocument.empty()
            await self.store.save_document(doc)

            self.document = doc
            self._password = password
            self.state = SyncState.UNLOCKED
            logger.info("Connected to vault %s (%d entries)", vault_id, len(doc.entries))
            return doc
        finally:
            if self.state is not SyncState.UNLOCKED:
                await self._bind(None)
                self.state = SyncState.LOCKED

    async def update_credential(
        self, api_key: Optional[str], endpoint: Optional[str] = None
    ) -> VaultIdentity:
        """Rotate the relay credential of the current vault.

        *endpoint* replaces the sync server when given ("" switches the vault
        to local-only). The vault id never changes. Queued uploads are kept
        and go out through the new client.
        """
        if self.identity is None:
            raise ConfigurationError("No vault configured on this device")
        if self.state in (SyncState.UNLOCKING, SyncState.MERGING):
            raise StateError("Unlock already in progress")
        new_endpoint = self.identity.endpoint if endpoint is None else (endpoint.strip() or None)
        if new_endpoint and not resolve_api_key(api_key):
            raise ConfigurationError("An API key is required to connect to the sync server")

        identity = replace(self.identity, endpoint=new_endpoint, api_key=api_key or None)
        try:
            remote = self._remote_factory(identity)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

        await self.store.save_identity(identity)
        if self._remote is not None:
            await self._remote.aclose()
        self._remote = remote
        self.identity = identity
        self.offline = False
        self.message = None
        logger.info("Updated sync settings for vault %s (remote=%s)", identity.vault_id, identity.has_remote)
        return identity

    # -----------------------------------------------------------------
    # Unlock / sync
    # -----------------------------------------------------------------

    async def unlock(self, password: str) -> JournalDocument:
        """Download, decrypt, merge and persist; then accept edits.

        Raises DecryptionError (and stays locked) if the remote blob does not
        open with *password*. Network trouble unlocks in offline mode.
        """
        if self.state is not SyncState.LOCKED:
            if self.state is SyncState.UNLOCKED:
                raise StateError("Vault is already unlocked")
            raise StateError("Unlock already in progress")
        if self.identity is None:
            if await self.load() is None:
                raise ConfigurationError("No vault configured on this device")

        self.state = SyncState.UNLOCKING
        try:
            local = await self.store.get_document()
            remote_doc, reached = await self._download(password)

            self.state = SyncState.MERGING
            doc = await self._reconcile(remote_doc, local, reached, password)

            self.document = doc
            self._password = password
            self.state = SyncState.UNLOCKED
            logger.info(
                "Unlocked vault %s (%d entries, offline=%s)",
                self.identity.vault_id, len(doc.entries), self.offline,
            )
            return doc
        finally:
            if self.state is not SyncState.UNLOCKED:
                self.state = SyncState.LOCKED

    async def sync_now(self) -> JournalDocument:
        """Explicit pull + merge while unlocked."""
        self._require_state(SyncState.UNLOCKED)
        remote_doc, reached = await self._download(self._password)
        self.document = await self._reconcile(remote_doc, self.document, reached, self._password)
        return self.document

    async def _download(
        self, password: str, *, strict_auth: bool = False
    ) -> Tuple[Optional[JournalDocument], bool]:
        """Return ``(remote document or None, whether the relay answered)``.

        With *strict_auth* a rejected credential raises instead of counting
        as offline.
        """
        if self._remote is None or self.identity is None:
            return None, False
        if not self._is_online():
            self._go_offline("no connectivity")
            return None, False

        try:
            blob = await self._remote.fetch_blob(self.identity.vault_id)
        except AuthorizationError:
            if strict_auth:
                raise
            self._go_offline("credential rejected")
            return None, False
        except TransportError as exc:
            self._go_offline(str(exc))
            return None, False

        self.offline = False
        self.message = None
        if blob.data is None:
            return None, True
        plaintext = await asyncio.to_thread(crypto.decrypt, blob.data, password)
        return JournalDocument.from_json(plaintext), True

    async def _reconcile(
        self,
        remote_doc: Optional[JournalDocument],
        local: Optional[JournalDocument],
        reached: bool,
        password: str,
    ) -> JournalDocument:
        if remote_doc is None:
            doc = local or JournalDocument.empty()
            if local is None:
                await self.store.save_document(doc)
            if reached and doc.entries:
                # remote is empty: seed it from this device
                await self._enqueue(doc, password)
            return doc

        doc = merge(remote_doc, local)
        await self.store.save_document(doc)
        self.detector.mark_synced(doc)
        if fingerprint(doc) != fingerprint(remote_doc):
            await self._enqueue(doc, password)
        return doc

    def _go_offline(self, reason: str) -> None:
        logger.info("Sync unavailable, continuing with local data: %s", reason)
        self.offline = True
        self.message = OFFLINE_MESSAGE

    # -----------------------------------------------------------------
    # Editing
    # -----------------------------------------------------------------

    def entry_for(self, date: str) -> Entry:
        """Existing entry for *date*, or a new unsaved one."""
        self._require_state(SyncState.UNLOCKED)
        validate_date_key(date)
        existing = self.document.entries.get(date)
        return existing if existing is not None else Entry.new(date)

    async def save_entry(self, entry: Entry) -> Entry:
        """Store *entry* under its date, persist, and queue an upload if needed."""
        self._require_state(SyncState.UNLOCKED)
        doc = self.document
        for key, other in doc.entries.items():
            if other.id == entry.id and key != entry.date:
                raise ValidationError("An entry's date cannot be changed")

        entry.touch()
        entry.validate()
        doc.entries[entry.date] = entry
        doc.metadata.last_sync = utc_now_iso()
        await self._persist_and_queue(doc)
        return entry

    async def delete_entry(self, date: str) -> bool:
        """Remove the entry for *date* locally; returns False if there was none.

        Copies still held remotely come back on the next merge.
        """
        self._require_state(SyncState.UNLOCKED)
        doc = self.document
        if doc.entries.pop(date, None) is None:
            return False
        await self._persist_and_queue(doc)
        return True

    async def _persist_and_queue(self, doc: JournalDocument) -> None:
        # compare against the persisted copy before overwriting it
        changed = await self.detector.has_changed(doc)
        await self.store.save_document(doc)
        if changed:
            await self._enqueue(doc, self._password)

    async def _enqueue(self, doc: JournalDocument, password: str) -> None:
        if self._remote is not None and self.identity is not None:
            ciphertext = await asyncio.to_thread(crypto.encrypt, doc.to_json(), password)
            self.queue.enqueue(self.identity.vault_id, ciphertext)
        # optimistic: delivery is the queue's job from here on
        self.detector.mark_synced(doc)

    async def _upload(self, vault_id: str, ciphertext: str) -> None:
        if self._remote is None:
            raise TransportError("No sync server configured")
        if not self._is_online():
            self._go_offline("no connectivity")
            raise TransportError("Offline")
        try:
            await self._remote.put_blob(vault_id, ciphertext)
        except TransportError:
            self.offline = True
            self.message = OFFLINE_MESSAGE
            raise
        self.offline = False
        self.message = None

    # -----------------------------------------------------------------
    # Teardown
    # -----------------------------------------------------------------

    async def flush(self) -> None:
        """Push any queued upload now (window closing or losing focus)."""
        await self.queue.flush()

    async def lock(self) -> None:
        """Forget the password and the in-memory journal; keep the vault."""
        await self.queue.flush()
        self.document = None
        self._password = None
        self.state = SyncState.LOCKED

    async def reset_vault(self, delete_remote: bool = False) -> None:
        """Sign out of the vault and wipe local data.

        The queue is cleared before the identity goes away so no retry can
        fire against a stale vault id.
        """
        self.queue.clear()
        self.detector.reset()
        remote_error: Optional[TransportError] = None
        if delete_remote and self._remote is not None and self.identity is not None:
            try:
                await self._remote.delete_blob(self.identity.vault_id)
            except TransportError as exc:
                logger.warning("Could not delete remote copy of vault %s: %s", self.identity.vault_id, exc)
                remote_error = exc
        await self.store.clear()
        await self._bind(None)
        self.document = None
        self._password = None
        self.offline = False
        self.message = f"Remote copy was not deleted: {remote_error}" if remote_error else None
        self.state = SyncState.LOCKED
        logger.info("Vault reset")

    async def aclose(self) -> None:
        """Final flush, then drop whatever could not be sent and close the client."""
        try:
            await self.queue.flush()
        finally:
            queued = self.queue.status()["queued"]
            if queued:
                logger.warning("Discarding %d unsent upload(s) on close", queued)
            self.queue.clear()
            if self._remote is not None:
                await self._remote.aclose()
                self._remote = None

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    async def _bind(self, identity: Optional[VaultIdentity]) -> None:
        """Switch the active identity and its remote client."""
        if self._remote is not None:
            await self._remote.aclose()
            self._remote = None
        self.identity = identity
        if identity is not None:
            try:
                self._remote = self._remote_factory(identity)
            except ValueError as exc:
                self.identity = None
                raise ConfigurationError(str(exc)) from exc

    def _require_state(self, state: SyncState) -> None:
        if self.state is not state:
            raise StateError(f"Operation requires {state.value} state (currently {self.state.value})")
