from __future__ import annotations

from datetime import date
from typing import Optional

import pandas as pd

from ledger.db import q
from ledger.services.closings import list_closings
from ledger.utils import to_date

SALE_COLUMNS = ["customer_id", "date", "bottles_sold", "amount_received", "unit_price"]


def sales_frame(rows) -> pd.DataFrame:
    """Sales rows (sqlite rows or archived dicts) with a numeric `value` column."""
    df = pd.DataFrame([dict(r) for r in rows])
    if df.empty:
        return pd.DataFrame(columns=SALE_COLUMNS + ["value"])

    for col in ["bottles_sold", "amount_received", "unit_price"]:
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0)
    df["date"] = pd.to_datetime(df["date"].astype(str).str[:10]).dt.date
    # billed value: unit price x bottles when priced, else the cash taken
    df["value"] = df["amount_received"].where(df["unit_price"] == 0, df["unit_price"] * df["bottles_sold"])
    return df


def period_summary(conn, start, end) -> dict:
    """Cash view of a period over live rows: money received vs money spent."""
    lo, hi = to_date(start), to_date(end)
    sales = sales_frame(q(conn, "SELECT * FROM sales"))
    expenses = pd.DataFrame([dict(r) for r in q(conn, "SELECT * FROM expenses")])

    if not sales.empty:
        sales = sales[(sales["date"] >= lo) & (sales["date"] <= hi)]
    revenue = float(sales["amount_received"].sum()) if not sales.empty else 0.0

    total_expenses = 0.0
    if not expenses.empty:
        expenses["date"] = pd.to_datetime(expenses["date"].astype(str).str[:10]).dt.date
        expenses = expenses[(expenses["date"] >= lo) & (expenses["date"] <= hi)]
        total_expenses = float(pd.to_numeric(expenses["amount"], errors="coerce").fillna(0).sum())

    return {
        "start": lo.isoformat(),
        "end": hi.isoformat(),
        "sales_count": int(len(sales)),
        "total_revenue": revenue,
        "total_expenses": total_expenses,
        "net_profit": revenue - total_expenses,
    }


def dashboard_stats(conn, today: Optional[date] = None) -> dict:
    day = to_date(today or date.today()).isoformat()
    todays = q(conn, "SELECT COALESCE(SUM(amount_received),0) AS revenue, COUNT(1) AS n FROM sales WHERE date=?", (day,))[0]
    cust = q(
        conn,
        """
        SELECT
          COUNT(1) AS customers,
          COALESCE(SUM(total_balance),0) AS pending_balance,
          COALESCE(SUM(delivery_due_today),0) AS deliveries_due,
          COALESCE(SUM(empty_bottles_on_hand),0) AS empties_out
        FROM customers
        """,
    )[0]
    return {
        "date": day,
        "revenue_today": float(todays["revenue"]),
        "sales_today": int(todays["n"]),
        "customers": int(cust["customers"]),
        "pending_balance": float(cust["pending_balance"]),
        "deliveries_due": int(cust["deliveries_due"]),
        "empty_bottles_out": int(cust["empties_out"]),
    }


def outstanding_as_of(conn, as_of: Optional[date] = None) -> pd.DataFrame:
    """
    Approximate amount each customer owed at the end of `as_of`.

    Starts from the live balance, adds back the unpaid value of closings that
    ended on or before the date, and removes live activity up to the date.
    Negative results are shown as zero. Sorted highest first.
    """
    day = to_date(as_of or date.today())
    customers = pd.DataFrame([dict(r) for r in q(conn, "SELECT id, name, mobile, total_balance FROM customers")])
    if customers.empty:
        return pd.DataFrame(columns=["customer_id", "name", "mobile", "total_balance", "outstanding"])

    archived_rows = []
    for c in list_closings(conn):
        if to_date(c["period_end"]) <= day:
            archived_rows.extend(c["sales"])
    archived = sales_frame(archived_rows)
    live = sales_frame(q(conn, "SELECT * FROM sales"))
    if not live.empty:
        live = live[live["date"] <= day]

    def _unpaid(df: pd.DataFrame) -> pd.Series:
        if df.empty:
            return pd.Series(dtype=float)
        g = df.groupby("customer_id")
        return g["value"].sum() - g["amount_received"].sum()

    out = customers.rename(columns={"id": "customer_id"})
    out["archived_unpaid"] = out["customer_id"].map(_unpaid(archived)).fillna(0.0)
    out["live_unpaid"] = out["customer_id"].map(_unpaid(live)).fillna(0.0)
    approx = out["total_balance"] + out["archived_unpaid"] - out["live_unpaid"]
    out["outstanding"] = approx.round().clip(lower=0)
    out = out.drop(columns=["archived_unpaid", "live_unpaid"])
    return out.sort_values("outstanding", ascending=False).reset_index(drop=True)


def bottle_tracking(conn) -> pd.DataFrame:
    """Customers holding more delivered bottles than empties on hand, largest deficit first."""
    cols = ["customer_id", "name", "mobile", "bottles_purchased", "empty_bottles_on_hand", "outstanding_bottles"]
    df = pd.DataFrame(
        [dict(r) for r in q(conn, "SELECT id, name, mobile, bottles_purchased, empty_bottles_on_hand FROM customers")]
    )
    if df.empty:
        return pd.DataFrame(columns=cols)

    df = df.rename(columns={"id": "customer_id"})
    df["empty_bottles_on_hand"] = df["empty_bottles_on_hand"].fillna(0).astype(int)
    df["outstanding_bottles"] = df["bottles_purchased"] - df["empty_bottles_on_hand"]
    df = df[df["outstanding_bottles"] > 0]
    return df[cols].sort_values("outstanding_bottles", ascending=False).reset_index(drop=True)
