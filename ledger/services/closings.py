from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field

from ledger.db import q, transaction, x
from ledger.errors import MonthCloseFailed
from ledger.services.sales import sale_value
from ledger.utils import iso_now, to_date

logger = logging.getLogger(__name__)

# Live tables archived by a close, in delete order.
ARCHIVED_TABLES = ("sales", "expenses", "bottle_logs", "stock_adjustments")


@dataclass
class ClosingResult:
    closing_id: int
    period_start: str
    period_end: str
    total_revenue: float
    total_expenses: float
    archived: dict[str, int] = field(default_factory=dict)
    balance_updates: dict[int, float] = field(default_factory=dict)


def _in_range(rows, start, end) -> tuple[list, list]:
    inside, outside = [], []
    for r in rows:
        (inside if start <= to_date(r["date"]) <= end else outside).append(r)
    return inside, outside


def _shortfalls(sales) -> dict[int, float]:
    expected: dict[int, float] = defaultdict(float)
    received: dict[int, float] = defaultdict(float)
    for s in sales:
        cid = int(s["customer_id"])
        expected[cid] += sale_value(s)
        received[cid] += float(s["amount_received"] or 0)
    return {cid: expected[cid] - received[cid] for cid in expected if expected[cid] > received[cid]}


def close_month(conn, start, end) -> ClosingResult:
    """
    Archives every sale, expense, bottle log and stock adjustment dated in the
    inclusive range [start, end] into an immutable snapshot and removes them
    from the live tables.

    Each customer's unpaid shortfall for the period (billed value minus cash
    received) is added on top of their current balance. There is no way to
    re-open a closed period.

    Any failure is logged and surfaced as MonthCloseFailed; the whole close
    rolls back, so nothing is half-archived.
    """
    try:
        start_d = to_date(start)
        end_d = to_date(end)
        if start_d > end_d:
            raise ValueError(f"Period start {start_d} is after period end {end_d}.")

        with transaction(conn):
            partitions = {t: _in_range(q(conn, f"SELECT * FROM {t} ORDER BY id"), start_d, end_d)[0] for t in ARCHIVED_TABLES}
            sales = partitions["sales"]
            expenses = partitions["expenses"]

            total_revenue = sum(sale_value(s) for s in sales)
            total_expenses = sum(float(e["amount"] or 0) for e in expenses)

            known = {int(r["id"]) for r in q(conn, "SELECT id FROM customers")}
            updates = {cid: amt for cid, amt in _shortfalls(sales).items() if cid in known}
            for cid, amt in updates.items():
                x(conn, "UPDATE customers SET total_balance = total_balance + ? WHERE id=?", (amt, cid))

            closing_id = x(
                conn,
                """
                INSERT INTO monthly_closings (
                    period_start, period_end, created_at,
                    sales_json, expenses_json, total_revenue, total_expenses
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    start_d.isoformat(),
                    end_d.isoformat(),
                    iso_now(),
                    json.dumps([dict(s) for s in sales]),
                    json.dumps([dict(e) for e in expenses]),
                    float(total_revenue),
                    float(total_expenses),
                ),
            )

            for table, rows in partitions.items():
                for r in rows:
                    x(conn, f"DELETE FROM {table} WHERE id=?", (int(r["id"]),))
    except Exception:
        logger.exception("Error closing month %s -> %s", start, end)
        raise MonthCloseFailed()

    archived = {t: len(rows) for t, rows in partitions.items()}
    logger.info(
        "Closed period %s -> %s: archived %s sales and %s expenses",
        start_d, end_d, archived["sales"], archived["expenses"],
    )
    return ClosingResult(
        closing_id=int(closing_id),
        period_start=start_d.isoformat(),
        period_end=end_d.isoformat(),
        total_revenue=float(total_revenue),
        total_expenses=float(total_expenses),
        archived=archived,
        balance_updates=updates,
    )


def _decode(row) -> dict:
    d = dict(row)
    d["sales"] = json.loads(d.pop("sales_json") or "[]")
    d["expenses"] = json.loads(d.pop("expenses_json") or "[]")
    return d


def list_closings(conn) -> list[dict]:
    return [_decode(r) for r in q(conn, "SELECT * FROM monthly_closings ORDER BY created_at DESC, id DESC")]


def get_closing(conn, closing_id: int):
    rows = q(conn, "SELECT * FROM monthly_closings WHERE id=?", (int(closing_id),))
    return _decode(rows[0]) if rows else None
