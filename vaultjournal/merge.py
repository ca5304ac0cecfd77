# -*- coding: utf-8 -*-
"""Last-write-wins merge of a downloaded document into the local one.

Entries are atomic: the newer entry wins as a whole, fields are never
interleaved. There are no tombstones, so an entry deleted on one device comes
back from any copy that still has it.
"""
from __future__ import annotations

import copy
import logging
from typing import Optional

from .models import JournalDocument, parse_timestamp, utc_now_iso

logger = logging.getLogger(__name__)


def merge(
    remote: Optional[JournalDocument],
    local: Optional[JournalDocument],
    *,
    now: Optional[str] = None,
) -> JournalDocument:
    """Combine *remote* and *local* per date key; newer ``updatedAt`` wins.

    Ties keep the remote entry. Metadata comes from *remote* with
    ``lastSync`` set to *now* (default: current time).
    """
    if remote is None:
        if local is None:
            raise ValueError("Nothing to merge")
        return local.copy()

    stamp = now or utc_now_iso()
    result = remote.copy()
    result.metadata.last_sync = stamp
    if local is None or not local.entries:
        return result

    local_wins = 0
    for key, local_entry in local.entries.items():
        remote_entry = remote.entries.get(key)
        if remote_entry is None or (
            parse_timestamp(local_entry.updated_at) > parse_timestamp(remote_entry.updated_at)
        ):
            result.entries[key] = copy.deepcopy(local_entry)
            local_wins += 1

    logger.debug(
        "Merged %d remote and %d local entries (%d taken from local)",
        len(remote.entries),
        len(local.entries),
        local_wins,
    )
    return result
