# -*- coding: utf-8 -*-
"""Cheap change detection for the journal document.

A fingerprint only looks at entry keys and their ``updatedAt`` values, so
metadata churn (``lastSync``) never triggers an upload.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from .models import JournalDocument

logger = logging.getLogger(__name__)

BaselineLoader = Callable[[], Awaitable[Optional[JournalDocument]]]


def fingerprint(doc: JournalDocument) -> str:
    """Return ``count:key:updatedAt|key:updatedAt...`` over sorted keys."""
    keys = sorted(doc.entries)
    pairs = "|".join(f"{key}:{doc.entries[key].updated_at}" for key in keys)
    return f"{len(keys)}:{pairs}"


class ChangeDetector:
    """Remembers the fingerprint of the last synced document for one vault.

    A ``True`` from :meth:`has_changed` also records the new fingerprint, so
    callers must follow it with a sync attempt or the change is lost to
    detection.
    """

    def __init__(self, load_baseline: BaselineLoader) -> None:
        self._load_baseline = load_baseline
        self._last: Optional[str] = None

    @property
    def last_fingerprint(self) -> Optional[str]:
        return self._last

    async def has_changed(self, doc: JournalDocument) -> bool:
        current = fingerprint(doc)
        if self._last is None:
            stored = await self._load_baseline()
            if stored is None:
                logger.debug("No stored baseline; treating document as changed")
                self._last = current
                return True
            self._last = fingerprint(stored)

        if current == self._last:
            return False
        self._last = current
        return True

    def mark_synced(self, doc: JournalDocument) -> None:
        self._last = fingerprint(doc)

    def reset(self) -> None:
        """Forget the baseline; the next check re-reads persisted storage."""
        self._last = None
