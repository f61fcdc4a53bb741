import os
import pytest

from convql import Database

SCHEMA = """
CREATE TABLE `user` (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name VARCHAR(30) NOT NULL
);
CREATE TABLE post (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    author_id INTEGER DEFAULT NULL,
    editor_id INTEGER DEFAULT NULL,
    is_published INTEGER DEFAULT 0,
    date_published VARCHAR(30) DEFAULT NULL,
    title VARCHAR(30) NOT NULL
);
CREATE TABLE category (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title VARCHAR(30) NOT NULL
);
CREATE TABLE categorization (
    category_id INTEGER NOT NULL,
    post_id INTEGER NOT NULL
);
CREATE TABLE dummy (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    test INTEGER
);

INSERT INTO `user` (id, name) VALUES (1, 'Writer');
INSERT INTO `user` (id, name) VALUES (2, 'Editor');
INSERT INTO `user` (id, name) VALUES (3, 'Chief Editor');

INSERT INTO post (id, title, date_published, author_id, editor_id) VALUES (11, 'Championship won', '2014-09-18', 1, NULL);
INSERT INTO post (id, title, date_published, author_id, editor_id) VALUES (12, 'Foo released', '2014-09-15', 1, 2);
INSERT INTO post (id, title, date_published, author_id, editor_id) VALUES (13, 'Bar released', '2014-09-21', 2, 3);

INSERT INTO category (id, title) VALUES (21, 'Tech');
INSERT INTO category (id, title) VALUES (22, 'Sports');
INSERT INTO category (id, title) VALUES (23, 'Basketball');

INSERT INTO categorization (category_id, post_id) VALUES (22, 11);
INSERT INTO categorization (category_id, post_id) VALUES (23, 11);
INSERT INTO categorization (category_id, post_id) VALUES (21, 12);
INSERT INTO categorization (category_id, post_id) VALUES (21, 13);
"""


@pytest.fixture(scope="function")
def db(request):
    """Fresh file SQLite database for each test, seeded with users, posts and categories."""
    os.makedirs("/tmp/convql-tests", exist_ok=True)
    path = f"/tmp/convql-tests/test-{request.function.__module__}-{request.function.__name__}.sqlite3"
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    database = Database(f"sqlite:///{path}")
    database.connection.raw.executescript(SCHEMA)

    database.conventions.set_alias("author", "user")
    database.conventions.set_alias("editor", "user")
    database.conventions.set_primary("categorization", ["category_id", "post_id"])
    database.conventions.set_alias("edit_post", "post")
    database.conventions.set_back_reference("user", "edit_post", "editor_id")

    yield database
    database.close()


@pytest.fixture(scope="function")
def queries(db):
    """Statements issued through ``db`` from now on, as ``(sql, params)`` pairs."""
    recorded = []
    db.on_query = lambda sql, params: recorded.append((sql, params))
    return recorded
