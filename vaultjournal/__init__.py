# -*- coding: utf-8 -*-
"""vaultjournal package.

Modules:
    crypto:         Password-based AES-GCM encryption of the journal blob.
    fingerprint:    Change detection over entry timestamps.
    sync_queue:     Debounced, coalescing upload queue with retry.
    merge:          Last-write-wins merge of remote and local documents.
    orchestrator:   Unlock / edit / sync state machine.
    insights:       Journal statistics and month history.
    remote:         HTTP client for the sync relay.
    db:             SQLite key/value persistence.
    models:         Entry, JournalDocument, VaultIdentity.
    config:         JSON config file.
    logging_config: Logging setup.
    ui:             Textual-based UI (screens, modals, app).
"""

__all__ = [
    "config",
    "crypto",
    "db",
    "errors",
    "fingerprint",
    "insights",
    "logging_config",
    "merge",
    "models",
    "orchestrator",
    "remote",
    "sync_queue",
    "ui",
]
