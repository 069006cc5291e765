from datetime import date

import pytest

from conftest import count, row
from ledger.errors import MonthCloseFailed
from ledger.services import closings as closings_mod
from ledger.services.closings import close_month, get_closing, list_closings
from ledger.services.customers import add_customer
from ledger.services.expenses import add_expense
from ledger.services.sales import add_counter_sale, add_sale

MAY_START = date(2024, 5, 1)
MAY_END = date(2024, 5, 31)


@pytest.fixture()
def may_books(conn, customer_id, bottle_item):
    """Two May sales, one June sale, a counter sale and expenses either side of the period."""
    other = add_customer(conn, name="Zain Abdullah")
    add_sale(conn, customer_id=customer_id, bottles_sold=2, amount_received=100, bottle_item_id=bottle_item, on=date(2024, 5, 1))
    add_sale(conn, customer_id=other, bottles_sold=1, amount_received=120, bottle_item_id=bottle_item, on=date(2024, 5, 31))
    add_sale(conn, customer_id=customer_id, bottles_sold=1, amount_received=0, bottle_item_id=bottle_item, on=date(2024, 6, 1))
    add_counter_sale(conn, amount=50, description="walk-in", on=date(2024, 5, 15))
    add_expense(conn, amount=15000, description="Electricity Bill", on=date(2024, 5, 20))
    add_expense(conn, amount=5000, description="Filter Replacement", on=date(2024, 4, 30))
    return {"customer": customer_id, "other": other}


def test_close_archives_range_and_layers_shortfall(conn, may_books):
    # live balances before close: 2*120-100 = 140 and 120+0 from June
    assert row(conn, "customers", may_books["customer"])["total_balance"] == 260

    res = close_month(conn, MAY_START, MAY_END)

    assert res.archived == {"sales": 3, "expenses": 1, "bottle_logs": 2, "stock_adjustments": 2}
    assert res.total_revenue == 240 + 120 + 50
    assert res.total_expenses == 15000
    assert res.balance_updates == {may_books["customer"]: 140}

    # the shortfall is added on top of the live balance
    assert row(conn, "customers", may_books["customer"])["total_balance"] == 400
    assert row(conn, "customers", may_books["other"])["total_balance"] == 0

    remaining = conn.execute("SELECT date FROM sales").fetchall()
    assert [r["date"] for r in remaining] == ["2024-06-01"]
    assert [r["date"] for r in conn.execute("SELECT date FROM expenses")] == ["2024-04-30"]
    assert count(conn, "bottle_logs") == 1
    assert count(conn, "stock_adjustments") == 1


def test_snapshot_holds_archived_rows(conn, may_books):
    res = close_month(conn, "2024-05-01", "2024-05-31")

    snap = get_closing(conn, res.closing_id)
    assert snap["period_start"] == "2024-05-01"
    assert snap["period_end"] == "2024-05-31"
    assert snap["created_at"]
    assert sorted(s["date"] for s in snap["sales"]) == ["2024-05-01", "2024-05-15", "2024-05-31"]
    assert [e["description"] for e in snap["expenses"]] == ["Electricity Bill"]
    assert snap["total_revenue"] == 410
    assert [c["id"] for c in list_closings(conn)] == [res.closing_id]


def test_close_over_empty_range(conn, may_books):
    sizes = {t: count(conn, t) for t in closings_mod.ARCHIVED_TABLES}
    balance = row(conn, "customers", may_books["customer"])["total_balance"]

    res = close_month(conn, date(2030, 1, 1), date(2030, 1, 31))

    assert res.total_revenue == 0
    assert res.total_expenses == 0
    assert {t: count(conn, t) for t in closings_mod.ARCHIVED_TABLES} == sizes
    assert row(conn, "customers", may_books["customer"])["total_balance"] == balance
    assert count(conn, "monthly_closings") == 1


@pytest.mark.parametrize("start,end", [("2024-05-31", "2024-05-01"), ("2024-13-01", "2024-05-31"), (None, "2024-05-31")])
def test_malformed_range_fails_without_changes(conn, may_books, start, end):
    with pytest.raises(MonthCloseFailed):
        close_month(conn, start, end)
    assert count(conn, "monthly_closings") == 0
    assert count(conn, "sales") == 4


def test_failure_mid_close_rolls_back(conn, may_books, monkeypatch):
    def boom():
        raise RuntimeError("clock unavailable")

    monkeypatch.setattr(closings_mod, "iso_now", boom)

    with pytest.raises(MonthCloseFailed):
        close_month(conn, MAY_START, MAY_END)

    assert row(conn, "customers", may_books["customer"])["total_balance"] == 260
    assert count(conn, "sales") == 4
    assert count(conn, "monthly_closings") == 0
