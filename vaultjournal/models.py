# -*- coding: utf-8 -*-
"""Journal data structures and their JSON wire form.

The JSON layout (camelCase keys, ISO-8601 ``Z`` timestamps) is what gets
encrypted and uploaded, so it must stay stable across devices.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
import copy
import json
import re
import uuid

from .errors import ValidationError

SCHEMA_VERSION = "1.0"
DEFAULT_MOOD = 5
MOOD_MIN = 1
MOOD_MAX = 10

VAULT_ID_RE = re.compile(r"^[a-f0-9-]{36}$", re.IGNORECASE)
DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# ---------------------------------------------------------------------
# Timestamps and identifiers
# ---------------------------------------------------------------------

def format_timestamp(moment: datetime) -> str:
    """Render *moment* as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    """Current UTC time in the wire timestamp format."""
    return format_timestamp(datetime.now(timezone.utc))


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware datetime (naive = UTC)."""
    if not isinstance(value, str) or not value:
        raise ValidationError(f"Invalid timestamp: {value!r}")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        moment = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(f"Invalid timestamp: {value!r}") from exc
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def new_id() -> str:
    """Random UUID4 string used for entry, device and vault ids."""
    return str(uuid.uuid4())


def validate_vault_id(vault_id: str) -> str:
    """Return *vault_id* unchanged or raise ValidationError."""
    if not isinstance(vault_id, str) or not VAULT_ID_RE.match(vault_id):
        raise ValidationError("Invalid vaultId format")
    return vault_id


def validate_date_key(date: str) -> str:
    """Return *date* if it is a real ``YYYY-MM-DD`` calendar date."""
    if not isinstance(date, str) or not DATE_KEY_RE.match(date):
        raise ValidationError(f"Invalid entry date: {date!r}")
    try:
        datetime.strptime(date, "%Y-%m-%d")
    except ValueError as exc:
        raise ValidationError(f"Invalid entry date: {date!r}") from exc
    return date


def _require(data: Dict[str, Any], key: str, kind: type) -> Any:
    if key not in data:
        raise ValidationError(f"Missing field: {key}")
    value = data[key]
    if not isinstance(value, kind):
        raise ValidationError(f"Field {key} has wrong type")
    return value


def _optional(data: Dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key, default)
    if not isinstance(value, kind):
        raise ValidationError(f"Field {key} has wrong type")
    return value


# ---------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------

@dataclass
class Entry:
    """One journal page, keyed by its calendar date."""

    id: str
    date: str
    title: str = ""
    content: str = ""
    tags: List[str] = field(default_factory=list)
    mood: int = DEFAULT_MOOD
    energy_drained: str = ""
    energy_gained: str = ""
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def new(cls, date: str) -> "Entry":
        """Blank entry for *date* with fresh id and timestamps."""
        validate_date_key(date)
        now = utc_now_iso()
        return cls(id=new_id(), date=date, created_at=now, updated_at=now)

    def touch(self) -> None:
        """Bump ``updated_at``; the new value is always strictly later."""
        # truncate to wire precision before comparing
        now = parse_timestamp(utc_now_iso())
        if self.updated_at:
            previous = parse_timestamp(self.updated_at)
            if now <= previous:
                now = previous + timedelta(milliseconds=1)
        self.updated_at = format_timestamp(now)

    def validate(self) -> None:
        validate_date_key(self.date)
        if not self.id:
            raise ValidationError("Entry id is required")
        if isinstance(self.mood, bool) or not isinstance(self.mood, int):
            raise ValidationError("Mood scale must be an integer")
        if not MOOD_MIN <= self.mood <= MOOD_MAX:
            raise ValidationError(f"Mood scale must be between {MOOD_MIN} and {MOOD_MAX}")
        if not all(isinstance(tag, str) for tag in self.tags):
            raise ValidationError("Tags must be strings")
        if parse_timestamp(self.updated_at) < parse_timestamp(self.created_at):
            raise ValidationError("updatedAt precedes createdAt")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "mood": {"scale": self.mood},
            "energyDrained": self.energy_drained,
            "energyGained": self.energy_gained,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entry":
        if not isinstance(data, dict):
            raise ValidationError("Entry must be an object")
        mood = _require(data, "mood", dict)
        entry = cls(
            id=_require(data, "id", str),
            date=_require(data, "date", str),
            title=_optional(data, "title", str, ""),
            content=_optional(data, "content", str, ""),
            tags=list(_optional(data, "tags", list, [])),
            mood=mood.get("scale", DEFAULT_MOOD),
            energy_drained=_optional(data, "energyDrained", str, ""),
            energy_gained=_optional(data, "energyGained", str, ""),
            created_at=_require(data, "createdAt", str),
            updated_at=_require(data, "updatedAt", str),
        )
        entry.validate()
        return entry


# ---------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------

@dataclass
class Metadata:
    last_sync: str
    version: str = SCHEMA_VERSION
    device_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"lastSync": self.last_sync, "version": self.version, "deviceId": self.device_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Metadata":
        if not isinstance(data, dict):
            raise ValidationError("Metadata must be an object")
        return cls(
            last_sync=str(data.get("lastSync", "")),
            version=str(data.get("version", SCHEMA_VERSION)),
            device_id=str(data.get("deviceId", "")),
        )


@dataclass
class JournalDocument:
    """All entries of a vault plus sync metadata; serialized as one blob."""

    entries: Dict[str, Entry]
    metadata: Metadata

    @classmethod
    def empty(cls, device_id: Optional[str] = None) -> "JournalDocument":
        return cls(
            entries={},
            metadata=Metadata(last_sync=utc_now_iso(), device_id=device_id or new_id()),
        )

    def copy(self) -> "JournalDocument":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": {key: entry.to_dict() for key, entry in self.entries.items()},
            "metadata": self.metadata.to_dict(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JournalDocument":
        if not isinstance(data, dict):
            raise ValidationError("Journal document must be an object")
        raw_entries = _require(data, "entries", dict)
        entries: Dict[str, Entry] = {}
        for key, raw in raw_entries.items():
            entry = Entry.from_dict(raw)
            if entry.date != key:
                raise ValidationError(f"Entry date {entry.date!r} does not match key {key!r}")
            entries[key] = entry
        metadata = Metadata.from_dict(data.get("metadata") or {})
        return cls(entries=entries, metadata=metadata)

    @classmethod
    def from_json(cls, text: str) -> "JournalDocument":
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Journal payload is not valid JSON") from exc
        return cls.from_dict(data)


# ---------------------------------------------------------------------
# Vault identity
# ---------------------------------------------------------------------

@dataclass
class VaultIdentity:
    """Stable vault id (the remote blob key) plus optional remote settings."""

    vault_id: str
    created_at: str
    endpoint: Optional[str] = None
    api_key: Optional[str] = None

    @property
    def has_remote(self) -> bool:
        return bool(self.endpoint)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"vaultId": self.vault_id, "createdAt": self.created_at}
        if self.endpoint:
            data["backendUrl"] = self.endpoint
        if self.api_key:
            data["apiKey"] = self.api_key
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VaultIdentity":
        if not isinstance(data, dict):
            raise ValidationError("Vault identity must be an object")
        return cls(
            vault_id=validate_vault_id(_require(data, "vaultId", str)),
            created_at=str(data.get("createdAt", "")),
            endpoint=data.get("backendUrl") or None,
            api_key=data.get("apiKey") or None,
        )
