"""Tests for vaultjournal.models: entries, documents and wire form."""

import json
from datetime import timezone

import pytest

from vaultjournal.errors import ValidationError
from vaultjournal.models import (
    Entry,
    JournalDocument,
    VaultIdentity,
    parse_timestamp,
    validate_vault_id,
)

from conftest import VAULT_ID, make_doc, make_entry

CREATED_PLUS = "2024-01-02T00:00:00.000Z"


class TestTimestamps:
    def test_z_suffix_parses_as_utc(self):
        moment = parse_timestamp("2024-01-01T08:30:00.000Z")
        assert moment.tzinfo is not None
        assert moment.utcoffset() == timezone.utc.utcoffset(None)

    def test_naive_is_read_as_utc(self):
        assert parse_timestamp("2024-01-01T08:30:00") == parse_timestamp("2024-01-01T08:30:00Z")

    def test_offsets_compare_as_instants(self):
        assert parse_timestamp("2024-01-01T10:00:00+02:00") == parse_timestamp("2024-01-01T08:00:00Z")

    def test_garbage_rejected(self):
        with pytest.raises(ValidationError):
            parse_timestamp("yesterday")


class TestEntry:
    def test_new_entry_defaults(self):
        entry = Entry.new("2024-03-05")
        assert entry.date == "2024-03-05"
        assert entry.mood == 5
        assert entry.tags == []
        assert entry.created_at == entry.updated_at
        entry.validate()

    def test_touch_is_strictly_increasing(self):
        entry = make_entry("2024-03-05", "2999-01-01T00:00:00.000Z")
        entry.touch()
        assert entry.updated_at == "2999-01-01T00:00:00.001Z"

    def test_touch_twice_never_repeats(self):
        entry = Entry.new("2024-03-05")
        seen = {entry.updated_at}
        for _ in range(5):
            entry.touch()
            assert entry.updated_at not in seen
            seen.add(entry.updated_at)

    def test_touch_within_the_same_millisecond(self):
        for _ in range(200):
            entry = Entry.new("2024-03-05")
            before = entry.updated_at
            entry.touch()
            assert parse_timestamp(entry.updated_at) > parse_timestamp(before)

    @pytest.mark.parametrize("mood", [0, 11, True])
    def test_mood_out_of_range(self, mood):
        entry = make_entry("2024-03-05", "2024-03-05T00:00:00.000Z", mood=mood)
        with pytest.raises(ValidationError):
            entry.validate()

    def test_updated_before_created_rejected(self):
        entry = make_entry("2024-03-05", "2023-12-31T00:00:00.000Z")
        with pytest.raises(ValidationError, match="precedes"):
            entry.validate()

    @pytest.mark.parametrize("date", ["2024-13-01", "2024-1-1", "today", ""])
    def test_bad_date(self, date):
        with pytest.raises(ValidationError):
            Entry.new(date)

    def test_wire_keys(self):
        data = make_entry("2024-03-05", CREATED_PLUS, tags=["a"], mood=7).to_dict()
        assert data["mood"] == {"scale": 7}
        assert set(data) == {
            "id", "date", "title", "content", "tags", "mood",
            "energyDrained", "energyGained", "createdAt", "updatedAt",
        }


class TestDocument:
    def test_json_round_trip(self):
        doc = make_doc(
            make_entry("2024-01-01", CREATED_PLUS, title="New year", tags=["x", "y"]),
            make_entry("2024-01-02", CREATED_PLUS, content="<p>hi</p>"),
        )
        assert JournalDocument.from_json(doc.to_json()) == doc

    def test_key_must_match_entry_date(self):
        data = make_doc(make_entry("2024-01-01", CREATED_PLUS)).to_dict()
        data["entries"]["2024-01-05"] = data["entries"].pop("2024-01-01")
        with pytest.raises(ValidationError, match="does not match"):
            JournalDocument.from_dict(data)

    def test_malformed_json(self):
        with pytest.raises(ValidationError):
            JournalDocument.from_json("{not json")

    @pytest.mark.parametrize("field, value", [
        ("tags", None),
        ("tags", "a,b"),
        ("tags", [1, 2]),
        ("title", None),
        ("content", 42),
        ("energyDrained", None),
        ("energyGained", ["x"]),
    ])
    def test_wrongly_typed_entry_fields(self, field, value):
        data = make_doc(make_entry("2024-01-01", CREATED_PLUS)).to_dict()
        data["entries"]["2024-01-01"][field] = value
        with pytest.raises(ValidationError):
            JournalDocument.from_json(json.dumps(data))

    def test_optional_text_fields_default_to_empty(self):
        data = make_doc(make_entry("2024-01-01", CREATED_PLUS)).to_dict()
        for key in ("title", "content", "tags", "energyDrained", "energyGained"):
            del data["entries"]["2024-01-01"][key]
        entry = JournalDocument.from_dict(data).entries["2024-01-01"]
        assert (entry.title, entry.tags, entry.energy_gained) == ("", [], "")

    def test_missing_entries(self):
        with pytest.raises(ValidationError, match="entries"):
            JournalDocument.from_json(json.dumps({"metadata": {}}))

    def test_empty_document(self):
        doc = JournalDocument.empty()
        assert doc.entries == {}
        assert doc.metadata.version == "1.0"
        assert doc.metadata.device_id

    def test_copy_is_deep(self):
        doc = make_doc(make_entry("2024-01-01", CREATED_PLUS, tags=["a"]))
        clone = doc.copy()
        clone.entries["2024-01-01"].tags.append("b")
        assert doc.entries["2024-01-01"].tags == ["a"]


class TestVaultIdentity:
    def test_valid_uuid(self):
        assert validate_vault_id(VAULT_ID) == VAULT_ID

    @pytest.mark.parametrize("bad", ["", "abc", "../../etc/passwd", VAULT_ID + "0", 42])
    def test_invalid_ids(self, bad):
        with pytest.raises(ValidationError):
            validate_vault_id(bad)

    def test_round_trip_omits_empty_remote(self):
        identity = VaultIdentity(vault_id=VAULT_ID, created_at=CREATED_PLUS)
        data = identity.to_dict()
        assert "backendUrl" not in data and "apiKey" not in data
        assert VaultIdentity.from_dict(data) == identity
        assert not identity.has_remote
