"""Tests for convql.row: property access, change tracking and identity."""

import datetime

import pytest

from convql import CleanWithoutId, Row, RowList
from tests.helpers import assert_row, statements


def test_access(db):
    row = db.create_row("user", {"name": "Foo Bar"})
    row["bar"] = 1
    row.set("baz", 2)
    row.set_data({"zip": "zap"})
    assert [row["name"], row.get("name"), row["id"], row["bar"], row["baz"]] == ["Foo Bar", "Foo Bar", None, 1, 2]
    assert dict(row.items()) == row.get_data()
    assert list(row) == ["name", "bar", "baz", "zip"]
    assert row.keys() == ["name", "bar", "baz", "zip"]
    assert len(row) == 4
    assert "bar" in row and "id" not in row
    del row["bar"]
    assert not row.has("bar")
    assert "bar" not in row.get_modified()


def test_alias_resolves_table(db):
    assert db.create_row("author").table == "user"


def test_clean(db):
    row = db.create_row("user", {"id": 42, "name": "Foo Bar"})
    assert row.get_modified() == {"name": "Foo Bar", "id": 42}
    assert row.get_original_id() is None
    assert not row.is_clean()
    assert not row.exists()
    row.set_clean()
    assert row.get_modified() == {}
    assert row.get_original_id() == 42
    assert row.is_clean()
    assert row.exists()


def test_clean_without_id(db):
    row = db.create_row("user", {"name": "Foo Bar"})
    with pytest.raises(CleanWithoutId):
        row.set_clean()


def test_set_dirty(db):
    row = db.create_row("user", {"id": 42, "name": "Foo Bar"}).set_clean()
    row.set_dirty()
    assert row.get_modified() == {"id": 42, "name": "Foo Bar"}


def test_setting_the_same_value_keeps_row_clean(db):
    row = db.table("user", 1)
    row["name"] = "Writer"
    row["id"] = 1
    assert row.is_clean()
    # equal but of another type
    row["id"] = 1.0
    assert row.get_modified() == {"id": 1.0}


def test_setting_none_on_absent_column_marks_it_modified(db):
    row = db.create_row("post")
    row["editor_id"] = None
    assert row.has("editor_id")
    assert row.get_modified() == {"editor_id": None}


def test_id(db):
    row = db.create_row("user", {"id": 42, "name": "Foo Bar"})
    values = [row["id"], row.get_id(), row.get_original_id()]
    row.set_clean()
    values.append(row.get_original_id())
    assert values == [42, 42, None, 42]


def test_compound_id(db):
    row = db.create_row("categorization")
    ids = [row.get_id()]
    row["category_id"] = 1
    ids.append(row.get_id())
    row["post_id"] = 2
    ids.append(row.get_id())
    assert ids == [None, None, {"category_id": 1, "post_id": 2}]


def test_nested_values_become_rows(db):
    row = db.create_row("post", {
        "title": "Fantasy Movie Review",
        "author": {"name": "Fantasy Guy"},
        "categorizationList": [
            {"category": {"title": "Movies"}},
            {"category": {"title": "Fantasy"}},
        ],
    })
    assert row.get_data() == {"title": "Fantasy Movie Review"}
    assert row.get_modified() == {"title": "Fantasy Movie Review"}
    assert isinstance(row["author"], Row)
    assert row["author"].table == "user"
    assert isinstance(row["categorizationList"], RowList)
    assert [c["category"]["title"] for c in row["categorizationList"]] == ["Movies", "Fantasy"]
    assert row["categorizationList"][0].table == "categorization"


def test_existing_rows_are_kept_in_lists(db):
    category = db.table("category", 21)
    row = db.create_row("post", {"categorizationList": [{"category": category}, db.create_row("categorization")]})
    assert row["categorizationList"][0]["category"] is category


def test_wrong_shapes_are_rejected(db):
    row = db.create_row("post")
    with pytest.raises(TypeError):
        row["tags"] = [1, 2]
    with pytest.raises(TypeError):
        row["categorizationList"] = {"category_id": 1}


def test_missing(db):
    row = db.create_row("categorization", {"post_id": None})
    assert row.get_missing() == ["category_id", "post_id"]
    row["category_id"] = 21
    assert row.get_missing() == ["post_id"]
    row["post_id"] = 11
    assert row.get_missing() == []


def test_update_references(db):
    author = db.table("user", 2)
    row = db.create_row("post", {"title": "x", "author": author, "editor": {"name": "New"}})
    row.update_references()
    assert row["author_id"] == 2
    assert row.has("editor_id") and row["editor_id"] is None


def test_update_back_references(db):
    row = db.create_row("post", {"id": 99, "categorizationList": [{"category_id": 21}, {"category_id": 22}]})
    row.update_back_references()
    assert [c["post_id"] for c in row["categorizationList"]] == [99, 99]
    # nothing to propagate without an id
    other = db.create_row("post", {"categorizationList": [{"category_id": 21}]})
    other.update_back_references()
    assert not other["categorizationList"][0].has("post_id")


def test_to_dict(db):
    data = {
        "title": "Fantasy Movie Review",
        "published": datetime.datetime(2014, 1, 1, 1, 0, 0),
        "created": db.literal("CURRENT_TIMESTAMP"),
        "author": {"name": "Fantasy Guy"},
        "categorizationList": [
            {"category": {"title": "Movies"}},
            {"category": {"title": "Fantasy"}},
        ],
    }
    row = db.create_row("post", data)
    expected = dict(data, published="2014-01-01 01:00:00", created="CURRENT_TIMESTAMP")
    assert row.to_dict() == expected


def test_delete(db, queries):
    row = db.create_row("user", {"id": 42, "name": "Foo Bar"})
    row.delete()
    row.set_clean()
    row.delete()
    assert statements(queries) == ["DELETE FROM `user` WHERE `id` = '42'"]
    assert not row.exists()
    assert row.get_modified() == {"id": 42, "name": "Foo Bar"}


def test_delete_fetched_row(db):
    db.table("category", 23).delete()
    assert db.table("category", 23) is None
    assert db.table("category").count() == 2


def test_delete_compound(db, queries):
    db.table("categorization", {"category_id": 21, "post_id": 12}).delete()
    assert statements(queries)[-1] == \
        "DELETE FROM `categorization` WHERE (`category_id` = '21') AND (`post_id` = '12')"
    assert_row(db.table("categorization").where("category_id", 21).fetch(), {"category_id": 21, "post_id": 13})


def test_unbound_row_is_its_own_root(db, queries):
    row = db.create_row("post", {"author_id": 2})
    assert row.get_root() is row
    assert row.get_global_keys("author_id") == [2]
    author = row.related("author").fetch()
    assert author["name"] == "Editor"
    assert row.related("author").fetch() is author
    assert statements(queries) == ["SELECT * FROM `user` WHERE `id` = '2'"]
