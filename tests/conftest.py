import pytest

from ledger.db import _connect, ensure_schema, x
from ledger.services.customers import add_customer


@pytest.fixture()
def conn():
    connection = _connect(":memory:")
    ensure_schema(connection)
    yield connection
    connection.close()


def _insert_item(conn, *, name: str, category: str, stock: int, sell_price=None, low_stock_threshold: int = 0) -> int:
    # Direct insert: no warehouse transfer or opening adjustment row.
    return x(
        conn,
        "INSERT INTO inventory_items (name, category, stock, low_stock_threshold, sell_price) VALUES (?, ?, ?, ?, ?)",
        (name, category, stock, low_stock_threshold, sell_price),
    )


@pytest.fixture()
def insert_item(conn):
    def _factory(**kwargs) -> int:
        return _insert_item(conn, **kwargs)

    return _factory


@pytest.fixture()
def bottle_item(conn) -> int:
    return _insert_item(conn, name="19-Liter Bottle", category="Containers", stock=10, sell_price=120.0)


@pytest.fixture()
def customer_id(conn) -> int:
    return add_customer(conn, name="Ibrahim Pasha", mobile="923331122333")


def count(conn, table: str, where: str = "1=1", params=()) -> int:
    return int(conn.execute(f"SELECT COUNT(1) FROM {table} WHERE {where}", tuple(params)).fetchone()[0])


def row(conn, table: str, row_id: int):
    return conn.execute(f"SELECT * FROM {table} WHERE id=?", (row_id,)).fetchone()
