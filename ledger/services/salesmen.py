from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from ledger.db import q, x
from ledger.utils import to_date

logger = logging.getLogger(__name__)


def list_salesmen(conn):
    return q(conn, "SELECT * FROM salesmen ORDER BY name")


def get_salesman(conn, salesman_id: int):
    rows = q(conn, "SELECT * FROM salesmen WHERE id=?", (int(salesman_id),))
    return rows[0] if rows else None


def add_salesman(conn, *, name: str, mobile: str = "", hire_date: Optional[date] = None) -> int:
    name = str(name or "").strip()
    if not name:
        raise ValueError("Salesman name is required.")
    salesman_id = x(
        conn,
        "INSERT INTO salesmen (name, mobile, hire_date) VALUES (?, ?, ?)",
        (name, str(mobile or "").strip(), to_date(hire_date or date.today()).isoformat()),
    )
    logger.info("Added salesman %s (%s)", salesman_id, name)
    return int(salesman_id)


def delete_salesman(conn, salesman_id: int) -> None:
    # Customers and sales keep the dangling id; lookups show it as unassigned.
    if get_salesman(conn, salesman_id) is None:
        raise ValueError(f"Salesman {salesman_id} not found.")
    x(conn, "DELETE FROM salesmen WHERE id=?", (int(salesman_id),))


def record_salesman_payment(conn, salesman_id: int, amount: float, *, on: Optional[date] = None) -> int:
    if get_salesman(conn, salesman_id) is None:
        raise ValueError(f"Salesman {salesman_id} not found.")
    try:
        amount = float(amount)
    except (TypeError, ValueError):
        raise ValueError("Amount must be a number.")
    if amount <= 0:
        raise ValueError("Amount must be > 0.")
    return x(
        conn,
        "INSERT INTO salesman_payments (salesman_id, amount, date) VALUES (?, ?, ?)",
        (int(salesman_id), amount, to_date(on or date.today()).isoformat()),
    )


def salesman_report(conn, salesman_id: int, *, today: Optional[date] = None) -> dict:
    """
    Today's deliveries plus the all-time position: cash collected across live
    sales minus payouts made to the salesman.
    """
    s = get_salesman(conn, salesman_id)
    if s is None:
        raise ValueError(f"Salesman {salesman_id} not found.")
    day = to_date(today or date.today()).isoformat()

    sales = q(conn, "SELECT * FROM sales WHERE salesman_id=?", (int(salesman_id),))
    todays = [r for r in sales if r["date"] == day]
    payments = q(
        conn,
        "SELECT * FROM salesman_payments WHERE salesman_id=? ORDER BY date DESC, id DESC",
        (int(salesman_id),),
    )
    total_paid = sum(float(p["amount"]) for p in payments)
    revenue_all_time = sum(float(r["amount_received"]) for r in sales)

    return {
        "salesman": s,
        "bottles_sold_today": sum(int(r["bottles_sold"]) for r in todays),
        "revenue_today": sum(float(r["amount_received"]) for r in todays),
        "total_paid": total_paid,
        "net_balance": revenue_all_time - total_paid,
        "payments": payments,
        "customers": q(conn, "SELECT * FROM customers WHERE salesman_id=? ORDER BY name", (int(salesman_id),)),
    }
