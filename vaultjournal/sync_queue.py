# -*- coding: utf-8 -*-
"""Debounced, coalescing upload queue.

Per vault: ``idle -> pending (timer armed) -> syncing -> idle``, with a
``syncing -> pending`` edge when the upload fails. Only the newest ciphertext
per vault is kept, and at most one upload runs at a time.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from .errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 5.0

Uploader = Callable[[str, str], Awaitable[Any]]


@dataclass
class QueuedSync:
    vault_id: str
    ciphertext: str
    enqueued_at: float = field(default_factory=time.time)


class SyncQueue:
    """Single-actor upload scheduler; must be used from one event loop."""

    def __init__(self, upload: Uploader, *, debounce: float = DEFAULT_DEBOUNCE_SECONDS) -> None:
        self._upload = upload
        self.debounce = debounce
        self._pending: Dict[str, QueuedSync] = {}
        self._timer: Optional[asyncio.TimerHandle] = None
        self._drain_task: Optional[asyncio.Task] = None
        self._busy = False
        # bumped by clear() so an in-flight failure cannot resurrect old data
        self._generation = 0

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def enqueue(self, vault_id: str, ciphertext: str) -> None:
        """Replace the pending payload for *vault_id* and restart the timer."""
        replaced = vault_id in self._pending
        self._pending[vault_id] = QueuedSync(vault_id, ciphertext)
        logger.debug(
            "Queued sync for vault %s (%d bytes, replaced=%s)", vault_id, len(ciphertext), replaced
        )
        self._arm()

    async def flush(self) -> None:
        """Skip the debounce delay and try to deliver whatever is queued now.

        An upload already in flight is waited for first. Delivery is not
        guaranteed; failures go back to the queue as usual.
        """
        self._cancel_timer()
        task = self._drain_task
        if task is not None and not task.done():
            await asyncio.wait({task})
        self._cancel_timer()
        await self._drain()

    def clear(self) -> None:
        """Drop the timer and every queued payload without uploading."""
        self._cancel_timer()
        dropped = len(self._pending)
        self._pending.clear()
        self._generation += 1
        if dropped:
            logger.info("Discarded %d queued sync(s)", dropped)

    def status(self) -> Dict[str, Any]:
        return {"queued": len(self._pending), "syncing": self._busy}

    def pending(self, vault_id: str) -> Optional[QueuedSync]:
        return self._pending.get(vault_id)

    # -----------------------------------------------------------------
    # Timer + drain
    # -----------------------------------------------------------------

    def _arm(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        if self._busy:
            # the running drain re-arms when it finishes
            return
        self._drain_task = asyncio.ensure_future(self._drain())
        self._drain_task.add_done_callback(self._on_drain_done)

    @staticmethod
    def _on_drain_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Sync upload crashed: %s", exc, exc_info=exc)

    async def _drain(self) -> None:
        if self._busy or not self._pending:
            return
        self._busy = True
        generation = self._generation
        batch = list(self._pending.values())
        self._pending.clear()
        try:
            for item in batch:
                try:
                    await self._upload(item.vault_id, item.ciphertext)
                    logger.info("Uploaded vault %s", item.vault_id)
                except TransportError as exc:
                    logger.warning("Upload for vault %s failed, will retry: %s", item.vault_id, exc)
                    if generation == self._generation:
                        # a newer payload queued mid-flight takes precedence
                        self._pending.setdefault(item.vault_id, item)
        finally:
            self._busy = False
            if self._pending and self._timer is None:
                self._arm()
