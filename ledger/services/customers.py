from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional

from ledger.db import q, transaction, x
from ledger.errors import CustomerNotFound
from ledger.utils import WEEKDAYS, to_date, weekday_name

logger = logging.getLogger(__name__)

STATUS_FILTERS = {"all", "pending", "paid"}


def _normalize_days(days: Optional[Iterable[str]]) -> str:
    if not days:
        return ""
    out = []
    for d in days:
        s = str(d).strip().capitalize()
        if not s:
            continue
        if s not in WEEKDAYS:
            raise ValueError(f"Unknown weekday: {d!r}.")
        if s not in out:
            out.append(s)
    return ",".join(out)


def delivery_days(row) -> list[str]:
    raw = str(row["delivery_days"] or "")
    return [d for d in raw.split(",") if d]


def get_customer(conn, customer_id: int):
    rows = q(conn, "SELECT * FROM customers WHERE id=?", (int(customer_id),))
    return rows[0] if rows else None


def require_customer(conn, customer_id: int):
    c = get_customer(conn, customer_id)
    if c is None:
        raise CustomerNotFound(customer_id)
    return c


def list_customers(conn, *, search: str = "", status: str = "all", due_only: bool = False):
    """
    Newest first. `search` matches name, mobile, house number, delivery area,
    balance or bottles purchased (case-insensitive). `status` is one of
    all / pending (balance > 0) / paid (balance <= 0).
    """
    if status not in STATUS_FILTERS:
        raise ValueError("Invalid status filter. Use 'all', 'pending' or 'paid'.")

    rows = q(conn, "SELECT * FROM customers ORDER BY id DESC")
    needle = str(search or "").strip().lower()

    out = []
    for c in rows:
        if needle:
            haystack = [
                str(c["name"] or ""),
                str(c["mobile"] or ""),
                str(c["house_number"] or ""),
                str(c["delivery_area"] or ""),
                f"{float(c['total_balance']):g}",
                str(c["bottles_purchased"]),
            ]
            if not any(needle in h.lower() for h in haystack):
                continue
        balance = float(c["total_balance"])
        if status == "pending" and balance <= 0:
            continue
        if status == "paid" and balance > 0:
            continue
        if due_only and not int(c["delivery_due_today"]):
            continue
        out.append(c)
    return out


def add_customer(
    conn,
    *,
    name: str,
    mobile: str = "",
    house_number: str = "",
    floor: Optional[int] = None,
    delivery_area: str = "",
    salesman_id: Optional[int] = None,
    daily_requirement: Optional[int] = None,
    delivery_days: Optional[Iterable[str]] = None,
) -> int:
    name = str(name or "").strip()
    if not name:
        raise ValueError("Customer name is required.")

    days = _normalize_days(delivery_days)
    due = 1 if weekday_name(date.today()) in days.split(",") else 0

    customer_id = x(
        conn,
        """
        INSERT INTO customers (
            name, house_number, floor, mobile, delivery_area, salesman_id,
            daily_requirement, delivery_days, delivery_due_today
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            name,
            str(house_number or "").strip(),
            int(floor) if floor is not None else None,
            str(mobile or "").strip(),
            str(delivery_area or "").strip(),
            int(salesman_id) if salesman_id else None,
            int(daily_requirement) if daily_requirement is not None else None,
            days,
            due,
        ),
    )
    logger.info("Added customer %s (%s)", customer_id, name)
    return int(customer_id)


_EDITABLE = ("name", "house_number", "floor", "mobile", "delivery_area", "salesman_id", "daily_requirement")


def update_customer(conn, customer_id: int, **fields) -> None:
    """
    Profile fields only. Running totals move through sales, payments and
    set_empty_bottles(); total_balance is never edited directly here.
    """
    require_customer(conn, customer_id)
    unknown = set(fields) - set(_EDITABLE)
    if unknown:
        raise ValueError(f"Cannot edit customer field(s): {', '.join(sorted(unknown))}.")
    if not fields:
        return
    if "name" in fields and not str(fields["name"] or "").strip():
        raise ValueError("Customer name is required.")

    cols = ", ".join(f"{k}=?" for k in fields)
    x(conn, f"UPDATE customers SET {cols} WHERE id=?", (*fields.values(), int(customer_id)))


def set_delivery_days(conn, customer_id: int, days: Iterable[str], *, today: Optional[date] = None) -> None:
    require_customer(conn, customer_id)
    normalized = _normalize_days(days)
    due = 1 if weekday_name(to_date(today or date.today())) in normalized.split(",") else 0
    x(
        conn,
        "UPDATE customers SET delivery_days=?, delivery_due_today=? WHERE id=?",
        (normalized, due, int(customer_id)),
    )


def refresh_delivery_due(conn, today: Optional[date] = None) -> int:
    """Recomputes delivery_due_today for every customer. Returns the number due."""
    day = weekday_name(to_date(today or date.today()))
    due = 0
    with transaction(conn):
        for c in q(conn, "SELECT id, delivery_days FROM customers"):
            flag = 1 if day in delivery_days(c) else 0
            due += flag
            x(conn, "UPDATE customers SET delivery_due_today=? WHERE id=?", (flag, int(c["id"])))
    return due


def set_empty_bottles(conn, customer_id: int, count: int) -> None:
    # Manual correction after a physical count; no bottle log is written.
    require_customer(conn, customer_id)
    x(conn, "UPDATE customers SET empty_bottles_on_hand=? WHERE id=?", (int(count), int(customer_id)))


def record_payment(conn, customer_id: int, amount: float, *, on: Optional[date] = None) -> int:
    """
    Cash received outside a delivery. Stored as a zero-bottle sale so it shows
    in the customer's history; the balance never drops below zero here.
    """
    c = require_customer(conn, customer_id)
    try:
        amount = float(amount)
    except (TypeError, ValueError):
        raise ValueError("Amount must be a number.")
    if amount <= 0:
        raise ValueError("Amount must be > 0.")
    day = to_date(on or date.today()).isoformat()

    with transaction(conn):
        sale_id = x(
            conn,
            """
            INSERT INTO sales (
                customer_id, customer_name, bottles_sold, bottles_returned,
                amount_received, date, is_counter_sale
            ) VALUES (?, ?, 0, 0, ?, ?, 0)
            """,
            (int(customer_id), str(c["name"]), amount, day),
        )
        x(
            conn,
            "UPDATE customers SET total_balance = MAX(0, total_balance - ?) WHERE id=?",
            (amount, int(customer_id)),
        )

    logger.info("Recorded payment %.2f from customer %s", amount, customer_id)
    return int(sale_id)


def delete_customer(conn, customer_id: int) -> dict:
    """
    Removes the customer with their sales and bottle logs. Inventory and stock
    history are item-scoped and stay as they are.
    """
    require_customer(conn, customer_id)
    with transaction(conn):
        sales = conn.execute("DELETE FROM sales WHERE customer_id=?", (int(customer_id),)).rowcount
        logs = conn.execute("DELETE FROM bottle_logs WHERE customer_id=?", (int(customer_id),)).rowcount
        x(conn, "DELETE FROM customers WHERE id=?", (int(customer_id),))

    logger.info("Deleted customer %s with %s sale(s) and %s bottle log(s)", customer_id, sales, logs)
    return {"sales": int(sales), "bottle_logs": int(logs)}


def customer_history(conn, customer_id: int) -> dict:
    return {
        "sales": q(conn, "SELECT * FROM sales WHERE customer_id=? ORDER BY date DESC, id DESC", (int(customer_id),)),
        "bottle_logs": q(
            conn, "SELECT * FROM bottle_logs WHERE customer_id=? ORDER BY date DESC, id DESC", (int(customer_id),)
        ),
    }
