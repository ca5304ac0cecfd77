# -*- coding: utf-8 -*-
"""Error types shared by the sync and encryption layers.

Cipher and merge code raise these; the queue and orchestrator translate
transport failures into retry/offline state and let decryption failures
through untouched.
"""
from __future__ import annotations


class JournalError(Exception):
    """Base class for every error raised by vaultjournal."""


class DecryptionError(JournalError):
    """Wrong password, corrupted blob or truncated input.

    The three causes are deliberately indistinguishable.
    """

    def __init__(self, message: str = "Decryption failed. Wrong password or corrupted data.") -> None:
        super().__init__(message)


class TransportError(JournalError):
    """Remote store unreachable or answered with a failure."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthorizationError(TransportError):
    """Credential missing or rejected by the remote store."""


class ConfigurationError(JournalError):
    """Vault setup cannot proceed with the given settings."""


class ValidationError(JournalError, ValueError):
    """Malformed vault id, entry or payload."""


class StateError(JournalError):
    """Operation not allowed in the orchestrator's current state."""
