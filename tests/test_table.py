"""Tests for Table CRUD.

Covers reads, insert/update/upsert/delete semantics, snapshot
immutability, validation-before-mutation on update, and identity
preservation for unmodified records.
"""

from unittest.mock import MagicMock

import pytest

from normstore.errors import RecordNotFoundError, SchemaError
from normstore.schema import ForeignKeyDef, StoreSchema, TableSchema
from normstore.session import Session
from normstore.snapshot import TableSnapshot
from normstore.views import RecordView, ViewFactory


def _blog_schema() -> StoreSchema:
    return StoreSchema(
        [
            TableSchema("authors", fields=["name"]),
            TableSchema(
                "posts",
                fields=["title"],
                foreign_keys=[
                    ForeignKeyDef(field="author_id", references="authors", relation_name="posts"),
                ],
            ),
        ]
    )


def _session(state: dict | None = None) -> Session:
    return Session(state or {}, _blog_schema(), view_factory=ViewFactory())


def _seeded() -> Session:
    """Session with two authors already in state."""
    authors = TableSnapshot(
        ids=["1", "2"],
        by_id={"1": {"id": "1", "name": "Ada"}, "2": {"id": "2", "name": "Grace"}},
    )
    return _session({"authors": authors})


# ============================================================================
# Reads
# ============================================================================


class TestReads:
    """exists / get / get_or_default / all / filter."""

    def test_exists(self) -> None:
        authors = _seeded().tables["authors"]
        assert authors.exists("1")
        assert authors.exists(1)
        assert not authors.exists("9")
        assert not authors.exists(None)

    def test_get_returns_view(self) -> None:
        view = _seeded().tables["authors"].get(1)
        assert isinstance(view, RecordView)
        assert view.id == "1"
        assert view.value == {"id": "1", "name": "Ada"}

    def test_get_missing_raises(self) -> None:
        with pytest.raises(RecordNotFoundError) as exc_info:
            _seeded().tables["authors"].get("9")
        assert exc_info.value.table == "authors"
        assert exc_info.value.record_id == "9"
        assert 'No "authors" record with id: 9 exists.' in str(exc_info.value)

    def test_get_or_default(self) -> None:
        authors = _seeded().tables["authors"]
        assert authors.get_or_default("9") is None
        assert authors.get_or_default(None) is None
        assert authors.get_or_default("2").id == "2"

    def test_all_in_table_order(self) -> None:
        assert [v.id for v in _seeded().tables["authors"].all()] == ["1", "2"]

    def test_filter_receives_live_views(self) -> None:
        authors = _seeded().tables["authors"]
        assert [v.id for v in authors.filter(lambda v: v.name == "Grace")] == ["2"]

    def test_views_are_memoized(self) -> None:
        authors = _seeded().tables["authors"]
        assert authors.get("1") is authors.get("1")
        assert authors.all()[0] is authors.get("1")


# ============================================================================
# Insert
# ============================================================================


class TestInsert:
    """insert / insert_many."""

    def test_insert_returns_view(self) -> None:
        author = _session().tables["authors"].insert({"id": "1", "name": "Ada"})
        assert author.name == "Ada"

    def test_insert_many_order_and_length(self) -> None:
        views = _session().tables["authors"].insert_many(
            [{"id": "b", "name": "B"}, {"id": "a", "name": "A"}]
        )
        assert len(views) == 2
        assert [v.id for v in views] == ["b", "a"]

    def test_appends_after_existing(self) -> None:
        authors = _seeded().tables["authors"]
        authors.insert({"id": "3", "name": "Barbara"})
        assert authors.state.ids == ("1", "2", "3")

    def test_existing_id_not_duplicated(self) -> None:
        """Inserting an id twice keeps a single list entry; the record is replaced."""
        authors = _seeded().tables["authors"]
        authors.insert({"id": "1", "name": "Lovelace"})
        assert authors.state.ids == ("1", "2")
        assert authors.get("1").name == "Lovelace"

    def test_previous_snapshot_untouched(self) -> None:
        authors = _seeded().tables["authors"]
        before = authors.state
        authors.insert({"id": "3", "name": "Barbara"})
        assert before.ids == ("1", "2")
        assert "3" not in before
        assert authors.state is not before

    def test_insert_nothing_for_table(self) -> None:
        with pytest.raises(SchemaError):
            _session().tables["authors"].insert([])

    def test_insert_many_empty(self) -> None:
        authors = _seeded().tables["authors"]
        before = authors.state
        assert authors.insert_many([]) == []
        assert authors.state is before


# ============================================================================
# Update
# ============================================================================


class TestUpdate:
    """update / update_many."""

    def test_update_merges_fields(self) -> None:
        authors = _seeded().tables["authors"]
        authors.update({"id": "1", "email": "ada@example.com"})
        assert authors.get("1").value == {"id": "1", "name": "Ada", "email": "ada@example.com"}

    def test_update_many_returns_all_in_order(self) -> None:
        """Unmodified records are returned too."""
        authors = _seeded().tables["authors"]
        views = authors.update_many([{"id": "2", "name": "Hopper"}, {"id": "1", "name": "Ada"}])
        assert [v.id for v in views] == ["2", "1"]

    def test_unmodified_record_keeps_identity(self) -> None:
        authors = _seeded().tables["authors"]
        record = authors.state.by_id["1"]
        authors.update({"id": "1", "name": "Ada"})
        assert authors.state.by_id["1"] is record

    def test_no_change_keeps_snapshot(self) -> None:
        authors = _seeded().tables["authors"]
        before = authors.state
        authors.update({"id": "1", "name": "Ada"})
        assert authors.state is before

    def test_modified_record_is_new_object(self) -> None:
        authors = _seeded().tables["authors"]
        before = authors.state
        untouched = before.by_id["2"]
        authors.update({"id": "1", "name": "Lovelace"})
        assert before.by_id["1"]["name"] == "Ada"
        assert authors.state.by_id["1"]["name"] == "Lovelace"
        assert authors.state.by_id["2"] is untouched

    def test_missing_id_raises(self) -> None:
        with pytest.raises(RecordNotFoundError, match="Failed to apply update"):
            _seeded().tables["authors"].update({"id": "9", "name": "Nobody"})

    def test_missing_id_mutates_nothing(self) -> None:
        """Validation happens before any record is written."""
        session = _seeded()
        authors = session.tables["authors"]
        before = authors.state
        with pytest.raises(RecordNotFoundError):
            authors.update_many([{"id": "1", "name": "Changed"}, {"id": "9", "name": "Nobody"}])
        assert authors.state is before
        assert authors.get("1").name == "Ada"
        assert session.changed_tables() == []

    def test_uses_schema_is_modified(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A schema that reports nothing modified prevents every write."""
        authors = _seeded().tables["authors"]
        is_modified = MagicMock(return_value=False)
        monkeypatch.setattr(authors.schema, "is_modified", is_modified)
        before = authors.state
        authors.update({"id": "1", "name": "Lovelace"})
        assert authors.state is before
        is_modified.assert_called_once_with(
            {"id": "1", "name": "Ada"}, {"id": "1", "name": "Lovelace"}
        )


# ============================================================================
# Upsert
# ============================================================================


class TestUpsert:
    """upsert routes on primary-key existence."""

    def test_upsert_existing_updates(self) -> None:
        authors = _seeded().tables["authors"]
        authors.upsert({"id": 1, "name": "Lovelace"})
        assert authors.state.ids == ("1", "2")
        assert authors.get("1").name == "Lovelace"

    def test_upsert_new_inserts(self) -> None:
        authors = _seeded().tables["authors"]
        view = authors.upsert({"id": "3", "name": "Barbara"})
        assert view.id == "3"
        assert authors.state.ids == ("1", "2", "3")

    def test_upsert_many_mixed(self) -> None:
        authors = _seeded().tables["authors"]
        views = authors.upsert_many(
            [{"id": "3", "name": "Barbara"}, {"id": "2", "name": "Hopper"}]
        )
        assert [v.id for v in views] == ["3", "2"]
        assert authors.get("2").name == "Hopper"
        assert authors.state.ids == ("1", "2", "3")

    def test_upsert_many_snapshot(self) -> None:
        authors = _seeded().tables["authors"]
        portion = TableSnapshot(ids=["4"], by_id={"4": {"id": "4", "name": "Radia"}})
        authors.upsert_many(portion)
        assert authors.get("4").name == "Radia"


# ============================================================================
# Delete
# ============================================================================


class TestDelete:
    """delete removes or does nothing."""

    def test_delete_then_probe(self) -> None:
        authors = _seeded().tables["authors"]
        authors.delete("1")
        assert authors.get_or_default("1") is None
        assert not authors.exists("1")
        assert [v.id for v in authors.all()] == ["2"]

    def test_delete_accepts_int(self) -> None:
        authors = _seeded().tables["authors"]
        authors.delete(2)
        assert authors.state.ids == ("1",)

    def test_delete_missing_is_noop(self) -> None:
        authors = _seeded().tables["authors"]
        before = authors.state
        authors.delete("9")
        assert authors.state is before

    def test_previous_snapshot_untouched(self) -> None:
        authors = _seeded().tables["authors"]
        before = authors.state
        authors.delete("1")
        assert before.ids == ("1", "2")
        assert "1" in before

    def test_no_cascade(self) -> None:
        """Posts keep their dangling foreign key."""
        session = _seeded()
        session.tables["posts"].insert({"id": "10", "author_id": "1"})
        session.tables["authors"].delete("1")
        post = session.tables["posts"].get("10")
        assert post.author_id == "1"
        assert post.author is None
