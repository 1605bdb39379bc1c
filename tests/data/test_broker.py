# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for DataBroker routing."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from graphite_data.data import DataBroker, Fields, Integer, MySQLDataProvider, PassiveRecord, String


class Note(PassiveRecord):
    table = "Note"
    pkey = "note_id"

    @classmethod
    def configure(cls, f: Fields) -> None:
        f.field("note_id", Integer, min=1)
        f.field("text", String, max=255)


class Memo(Note):
    table = "Memo"
    pkey = "note_id"


@pytest.fixture
def broker(db):
    db.register(Note)
    return DataBroker(db)


class TestProviderSelection:
    """Test provider registry."""

    def test_default_provider(self, broker):
        assert isinstance(broker.provider_for(Note), MySQLDataProvider)
        assert broker.provider_for("Note") is broker.default
        assert broker.provider_for(Note()) is broker.default

    def test_custom_provider(self, broker):
        custom = MagicMock()
        broker.set_provider(Memo, custom)
        assert broker.provider_for(Memo) is custom
        assert broker.provider_for("Memo") is custom
        assert broker.provider_for(Memo()) is custom
        assert broker.provider_for(Note) is broker.default

    def test_providers_from_constructor(self, db):
        custom = MagicMock()
        broker = DataBroker(db, {"Memo": custom})
        assert broker.provider_for(Memo) is custom

    def test_calls_routed(self, broker):
        custom = MagicMock()
        custom.find.return_value = {}
        broker.set_provider(Memo, custom)
        assert broker.fetch(Memo, {"text": "x"}) == {}
        custom.find.assert_called_once_with(Memo, {"text": "x"}, None, None, 0)


class TestOperations:
    """Test broker operations against the default provider."""

    def test_fetch_and_count(self, broker, server):
        server.respond("COUNT(", rows=[{"count": 2}])
        server.respond("FROM `Note` t\n", rows=[{"note_id": 1, "text": "a"}])
        notes = broker.fetch("Note", limit=5)
        assert list(notes) == [1]
        assert broker.count(Note) == 2

    def test_by_pk(self, broker, server):
        server.respond("FROM `Note`", rows=[{"note_id": 4, "text": "hello"}])
        note = broker.by_pk(Note, 4)
        assert note.get("text") == "hello"
        assert not note.has_diff()

    def test_by_pk_missing(self, broker):
        assert broker.by_pk(Note, 4) is None

    def test_by_pk_invalid(self, broker, server):
        assert broker.by_pk(Note, "abc") is None
        assert server.statements == []

    def test_save_inserts_new(self, broker, server):
        server.next_insert_id = 10
        note = Note({"text": "hello"})
        assert broker.save(note) == 10
        assert server.last.startswith("INSERT INTO `Note`")

    def test_save_updates_existing(self, broker, server):
        note = Note()
        note.load_from_row({"note_id": 3, "text": "a"})
        note.set("text", "b")
        assert broker.save(note) is True
        assert server.last.startswith("UPDATE `Note` SET `text` = 'b'")

    def test_load(self, broker, server):
        server.respond("FROM `Note`", rows=[{"note_id": 3, "text": "fresh"}])
        note = Note(pkey=3)
        assert broker.load(note) is True
        assert note.get("text") == "fresh"

    def test_delete(self, broker, server):
        note = Note(pkey=3)
        assert broker.delete(note) is True
        assert broker.delete_batch([Note(pkey=4), Note(pkey=5)]) is True
        assert server.statements == [
            "DELETE FROM `Note`\nWHERE `note_id` = 3",
            "DELETE FROM `Note`\nWHERE `note_id` IN (4, 5)",
        ]
