from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from ledger.db import q, x
from ledger.utils import to_date

logger = logging.getLogger(__name__)

PAYMENT_ACCOUNTS = {"cash", "bank"}


def _normalize_account(account: Optional[str]) -> Optional[str]:
    if not account:
        return None
    s = str(account).strip().lower()
    if s not in PAYMENT_ACCOUNTS:
        raise ValueError("Invalid payment account. Use 'cash' or 'bank'.")
    return s


def _amount(v) -> float:
    try:
        a = float(v)
    except (TypeError, ValueError):
        raise ValueError("Expense amount must be a number.")
    if a <= 0:
        raise ValueError("Expense amount must be > 0.")
    return a


def add_expense(
    conn,
    *,
    amount: float,
    description: str = "",
    name: Optional[str] = None,
    category: Optional[str] = None,
    payment_account: Optional[str] = None,
    on: Optional[date] = None,
) -> int:
    value = _amount(amount)
    expense_id = x(
        conn,
        """
        INSERT INTO expenses (date, name, category, description, amount, payment_account)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            to_date(on or date.today()).isoformat(),
            (name or "").strip() or None,
            (category or "").strip() or None,
            (description or "").strip(),
            value,
            _normalize_account(payment_account),
        ),
    )
    logger.info("Added expense %s: %.2f", expense_id, value)
    return int(expense_id)


def get_expense(conn, expense_id: int):
    rows = q(conn, "SELECT * FROM expenses WHERE id=?", (int(expense_id),))
    return rows[0] if rows else None


def update_expense(conn, expense_id: int, **fields) -> None:
    e = get_expense(conn, expense_id)
    if e is None:
        raise ValueError(f"Expense {expense_id} not found.")

    updates: dict = {}
    for k, v in fields.items():
        if k == "amount":
            updates["amount"] = _amount(v)
        elif k == "on":
            updates["date"] = to_date(v).isoformat()
        elif k == "payment_account":
            updates["payment_account"] = _normalize_account(v)
        elif k == "description":
            updates[k] = (v or "").strip()
        elif k in {"name", "category"}:
            updates[k] = (v or "").strip() or None
        else:
            raise ValueError(f"Cannot edit expense field: {k}.")
    if not updates:
        return

    cols = ", ".join(f"{k}=?" for k in updates)
    x(conn, f"UPDATE expenses SET {cols} WHERE id=?", (*updates.values(), int(expense_id)))


def list_expenses(conn, *, start: Optional[date] = None, end: Optional[date] = None):
    rows = q(conn, "SELECT * FROM expenses ORDER BY date DESC, id DESC")
    if start is None and end is None:
        return rows
    lo = to_date(start) if start is not None else date.min
    hi = to_date(end) if end is not None else date.max
    return [r for r in rows if lo <= to_date(r["date"]) <= hi]


def account_totals(conn, *, name: Optional[str] = None) -> dict:
    """
    Cash and bank totals with a transaction count, optionally for one payee.
    Expenses without a payment account count as cash.
    """
    rows = q(conn, "SELECT name, amount, payment_account FROM expenses")
    if name:
        rows = [r for r in rows if (r["name"] or "") == name]
    bank = sum(float(r["amount"]) for r in rows if r["payment_account"] == "bank")
    cash = sum(float(r["amount"]) for r in rows if r["payment_account"] != "bank")
    return {"cash_total": cash, "bank_total": bank, "transactions": len(rows)}
