"""Tests for convql.transaction: explicit control, context manager and savepoints."""

import pytest

from convql import TransactionError
from convql.transaction import TransactionManager


def _titles(db):
    return [row["title"] for row in db.table("category")]


def test_begin_rollback(db):
    assert db.begin() is True
    db.table("category").insert({"title": "Chess"})
    assert db.rollback() is True
    assert _titles(db) == ["Tech", "Sports", "Basketball"]


def test_begin_commit(db):
    db.begin()
    db.table("category").insert({"title": "Chess"})
    assert db.commit() is True
    assert _titles(db) == ["Tech", "Sports", "Basketball", "Chess"]


def test_transaction_commits(db, queries):
    with db.transaction():
        db.table("category").insert({"title": "Chess"})
    assert _titles(db)[-1] == "Chess"
    # transaction control is not reported to the observer
    assert [sql for sql, _ in queries][0] == "INSERT INTO `category` (`title`) VALUES ('Chess')"


def test_transaction_rolls_back_on_error(db):
    with pytest.raises(RuntimeError):
        with db.transaction():
            db.table("category").insert({"title": "Chess"})
            raise RuntimeError("boom")
    assert "Chess" not in _titles(db)


def test_nested_transaction_rolls_back_to_savepoint(db):
    with db.transaction() as outer:
        assert outer.level == 1
        db.table("category").insert({"title": "Chess"})
        with pytest.raises(RuntimeError):
            with db.transaction() as inner:
                assert inner.level == 2
                db.table("category").insert({"title": "Go"})
                raise RuntimeError("boom")
        db.table("category").insert({"title": "Poker"})
    assert _titles(db)[-2:] == ["Chess", "Poker"]


def test_transaction_handle_executes_statements(db):
    with db.transaction() as t:
        t.execute("INSERT INTO category (title) VALUES (?)", ["Chess"])
    assert _titles(db)[-1] == "Chess"


def test_transaction_handle_reports_statements(db, queries):
    with db.transaction() as t:
        t.execute("INSERT INTO category (title) VALUES (?)", ["Chess"])
    assert queries == [("INSERT INTO category (title) VALUES (?)", ["Chess"])]


def test_ended_transaction_cannot_be_used(db):
    with db.transaction() as t:
        pass
    with pytest.raises(TransactionError, match="no longer active"):
        t.execute("SELECT 1")


def test_outer_transaction_cannot_be_used_from_nested_one(db):
    with db.transaction() as outer:
        with db.transaction():
            with pytest.raises(TransactionError, match="Cannot use transaction level 1 from level 2"):
                outer.execute("SELECT 1")


def test_manager_level(db):
    manager = TransactionManager(db.connection)
    assert manager.level == 0
    with manager.transaction():
        assert manager.level == 1
        with manager.transaction():
            assert manager.level == 2
        assert manager.level == 1
    assert manager.level == 0
