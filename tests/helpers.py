"""Shared test helpers."""


def statements(queries) -> list[str]:
    """SQL of recorded ``(sql, params)`` pairs."""
    return [sql for sql, _ in queries]


def assert_row(row, expected: dict):
    """Assert a row has exactly the expected column values (nested rows excluded)."""
    assert row is not None, "Expected a row, got None"
    data = row.get_data()
    assert data == expected, f"{row.table}: got {data!r}, expected {expected!r}"
