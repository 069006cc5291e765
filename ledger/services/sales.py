from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from ledger.config import COUNTER_SALE_CUSTOMER_ID, COUNTER_SALE_NAME, DEFAULT_BOTTLE_TOKEN
from ledger.db import q, transaction, x
from ledger.errors import SaleNotFound
from ledger.services.customers import require_customer
from ledger.services.inventory import apply_stock_change, ensure_sufficient, get_item, resolve_items
from ledger.utils import to_date

logger = logging.getLogger(__name__)

PAYMENT_METHODS = {"cash", "bank"}


@dataclass
class SaleResult:
    sale_id: int
    unit_price: float
    balance_delta: float
    items_adjusted: list[int] = field(default_factory=list)
    bottle_log_id: Optional[int] = None


def _non_negative_int(v, label: str) -> int:
    try:
        n = int(v)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a whole number.")
    if n < 0:
        raise ValueError(f"{label} must be >= 0.")
    return n


def _non_negative_amount(v, label: str = "Amount received") -> float:
    try:
        a = float(v)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a number.")
    if a < 0:
        raise ValueError(f"{label} must be >= 0.")
    return a


def _normalize_payment_method(pm: Optional[str]) -> Optional[str]:
    if not pm:
        return None
    s = str(pm).strip().lower()
    if s in PAYMENT_METHODS:
        return s
    raise ValueError("Invalid payment method. Use 'cash' or 'bank'.")


def _resolve_unit_price(conn, bottle_item_id: Optional[int]) -> float:
    if not bottle_item_id:
        return 0.0
    item = get_item(conn, int(bottle_item_id))
    if item is None or item["sell_price"] is None:
        return 0.0
    return float(item["sell_price"])


def sale_value(sale) -> float:
    """Billed value of a sale: unit price x bottles when priced, else the cash taken."""
    unit = float(sale["unit_price"] or 0)
    if unit:
        return unit * int(sale["bottles_sold"])
    return float(sale["amount_received"] or 0)


def get_sale(conn, sale_id: int):
    rows = q(conn, "SELECT * FROM sales WHERE id=?", (int(sale_id),))
    return rows[0] if rows else None


def list_sales(
    conn,
    *,
    customer_id: Optional[int] = None,
    salesman_id: Optional[int] = None,
    counter_only: bool = False,
    on: Optional[date] = None,
    limit: Optional[int] = None,
):
    where = ["1=1"]
    params: list = []
    if customer_id is not None:
        where.append("customer_id=?")
        params.append(int(customer_id))
    if salesman_id is not None:
        where.append("salesman_id=?")
        params.append(int(salesman_id))
    if counter_only:
        where.append("is_counter_sale=1")
    if on is not None:
        where.append("date=?")
        params.append(to_date(on).isoformat())
    sql = f"SELECT * FROM sales WHERE {' AND '.join(where)} ORDER BY date DESC, id DESC"
    if limit:
        sql += f" LIMIT {int(limit)}"
    return q(conn, sql, params)


def add_sale(
    conn,
    *,
    customer_id: int,
    bottles_sold: int,
    amount_received: float,
    bottles_returned: int = 0,
    update_balance: bool = True,
    salesman_id: Optional[int] = None,
    bottle_category: Optional[str] = None,
    bottle_item_id: Optional[int] = None,
    description: Optional[str] = None,
    payment_method: Optional[str] = None,
    on: Optional[date] = None,
    default_token: str = DEFAULT_BOTTLE_TOKEN,
) -> SaleResult:
    """
    Records a delivery to a registered customer.

    Every check (customer, inventory match, stock) runs before the first write;
    the writes then go in one transaction:
    - each matched inventory item loses `bottles_sold` units, with an audit row
    - customer totals move (balance and paid bottles only when update_balance)
    - the sale row and, when bottles moved, a bottle log row are appended
    """
    sold = _non_negative_int(bottles_sold, "Bottles sold")
    returned = _non_negative_int(bottles_returned, "Bottles returned")
    amount = _non_negative_amount(amount_received)
    payment_method = _normalize_payment_method(payment_method)
    day = to_date(on or date.today()).isoformat()

    customer = require_customer(conn, customer_id)
    customer_name = str(customer["name"])

    items = []
    if sold > 0:
        try:
            items = resolve_items(conn, bottle_category, default_token=default_token)
            ensure_sufficient(items, sold)
        except ValueError as e:
            logger.warning("Sale to customer %s rejected: %s", customer_id, e)
            raise

    unit_price = _resolve_unit_price(conn, bottle_item_id)

    balance_delta = 0.0
    paid_delta = 0
    if update_balance:
        balance_delta = sold * unit_price - amount
        if unit_price > 0:
            paid_delta = math.floor(amount / unit_price)

    with transaction(conn):
        if items:
            apply_stock_change(conn, items, -sold, reason=f"Sale to {customer_name}", on=day)

        x(
            conn,
            """
            UPDATE customers SET
                bottles_purchased = bottles_purchased + ?,
                paid_bottles = paid_bottles + ?,
                total_balance = total_balance + ?,
                empty_bottles_on_hand = empty_bottles_on_hand + ?
            WHERE id=?
            """,
            (sold, paid_delta, balance_delta, sold - returned, int(customer_id)),
        )

        sale_id = x(
            conn,
            """
            INSERT INTO sales (
                customer_id, customer_name, bottles_sold, bottles_returned,
                amount_received, unit_price, bottle_category, bottle_item_id,
                date, is_counter_sale, salesman_id, description, payment_method
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?)
            """,
            (
                int(customer_id),
                customer_name,
                sold,
                returned,
                amount,
                unit_price or None,
                bottle_category or None,
                int(bottle_item_id) if bottle_item_id else None,
                day,
                int(salesman_id) if salesman_id else None,
                (description or "").strip() or None,
                payment_method,
            ),
        )

        log_id = None
        if sold > 0 or returned > 0:
            log_id = x(
                conn,
                """
                INSERT INTO bottle_logs (customer_id, date, bottles_taken, bottles_returned)
                VALUES (?, ?, ?, ?)
                """,
                (int(customer_id), day, sold, returned),
            )

    logger.info(
        "Sale %s: customer %s sold=%s returned=%s received=%.2f unit=%.2f",
        sale_id, customer_id, sold, returned, amount, unit_price,
    )
    return SaleResult(
        sale_id=int(sale_id),
        unit_price=float(unit_price),
        balance_delta=float(balance_delta),
        items_adjusted=[int(i["id"]) for i in items],
        bottle_log_id=int(log_id) if log_id else None,
    )


def add_counter_sale(conn, *, amount: float, description: str = "", on: Optional[date] = None) -> int:
    """Walk-in cash sale; touches no customer, inventory or bottle log."""
    amount = _non_negative_amount(amount, "Amount")
    if amount <= 0:
        raise ValueError("Amount must be > 0.")
    day = to_date(on or date.today()).isoformat()

    sale_id = x(
        conn,
        """
        INSERT INTO sales (
            customer_id, customer_name, bottles_sold, bottles_returned,
            amount_received, date, is_counter_sale, description
        ) VALUES (?, ?, 0, 0, ?, ?, 1, ?)
        """,
        (COUNTER_SALE_CUSTOMER_ID, COUNTER_SALE_NAME, amount, day, (description or "").strip() or None),
    )
    logger.info("Counter sale %s: %.2f", sale_id, amount)
    return int(sale_id)


_UNSET = object()


def edit_sale(
    conn,
    sale_id: int,
    *,
    amount_received=_UNSET,
    on=_UNSET,
    bottle_category=_UNSET,
    salesman_id=_UNSET,
    description=_UNSET,
    payment_method=_UNSET,
) -> float:
    """
    Edits the financial and descriptive fields of a sale. Bottle quantities
    are fixed once recorded, so inventory and bottle logs are left alone.

    A changed amount on a customer sale moves the customer's balance by the
    negative of the change. Returns that balance change.
    """
    sale = get_sale(conn, sale_id)
    if sale is None:
        raise SaleNotFound(sale_id)

    updates: dict = {}
    if amount_received is not _UNSET:
        updates["amount_received"] = _non_negative_amount(amount_received)
    if on is not _UNSET:
        updates["date"] = to_date(on).isoformat()
    if bottle_category is not _UNSET:
        updates["bottle_category"] = bottle_category or None
    if salesman_id is not _UNSET:
        updates["salesman_id"] = int(salesman_id) if salesman_id else None
    if description is not _UNSET:
        updates["description"] = (description or "").strip() or None
    if payment_method is not _UNSET:
        updates["payment_method"] = _normalize_payment_method(payment_method)
    if not updates:
        return 0.0

    balance_delta = 0.0
    old_amount = float(sale["amount_received"])
    new_amount = float(updates.get("amount_received", old_amount))
    if new_amount != old_amount and not int(sale["is_counter_sale"]):
        # more money received now means less owed
        balance_delta = -(new_amount - old_amount)

    with transaction(conn):
        if balance_delta:
            x(
                conn,
                "UPDATE customers SET total_balance = total_balance + ? WHERE id=?",
                (balance_delta, int(sale["customer_id"])),
            )
        cols = ", ".join(f"{k}=?" for k in updates)
        x(conn, f"UPDATE sales SET {cols} WHERE id=?", (*updates.values(), int(sale_id)))

    logger.info("Edited sale %s (%s); balance moved %.2f", sale_id, ", ".join(updates), balance_delta)
    return balance_delta


def delete_sale(conn, sale_id: int, *, default_token: str = DEFAULT_BOTTLE_TOKEN) -> SaleResult:
    """
    Removes a sale and reverses its effects on stock and customer totals.

    paid_bottles is not reversed (there is no payment ledger to say which
    bottles the cash covered) and the bottle log written by add_sale stays.
    """
    sale = get_sale(conn, sale_id)
    if sale is None:
        raise SaleNotFound(sale_id)

    sold = int(sale["bottles_sold"])
    returned = int(sale["bottles_returned"])
    unit = float(sale["unit_price"] or 0)
    amount = float(sale["amount_received"])

    items = []
    if sold > 0:
        try:
            items = resolve_items(conn, sale["bottle_category"], default_token=default_token)
        except ValueError:
            # item deleted since the sale; nothing left to credit
            logger.warning("Sale %s reversal found no inventory item to credit", sale_id)
            items = []

    balance_delta = 0.0
    with transaction(conn):
        if items:
            apply_stock_change(conn, items, sold, reason=f"Sale Reversal (ID: {int(sale_id)})")

        if not int(sale["is_counter_sale"]):
            balance_delta = -(sold * unit - amount)
            x(
                conn,
                """
                UPDATE customers SET
                    total_balance = total_balance + ?,
                    bottles_purchased = bottles_purchased - ?,
                    empty_bottles_on_hand = empty_bottles_on_hand + ?
                WHERE id=?
                """,
                (balance_delta, sold, returned - sold, int(sale["customer_id"])),
            )

        x(conn, "DELETE FROM sales WHERE id=?", (int(sale_id),))

    logger.info("Deleted sale %s; credited %s item(s) with %s", sale_id, len(items), sold)
    return SaleResult(
        sale_id=int(sale_id),
        unit_price=unit,
        balance_delta=balance_delta,
        items_adjusted=[int(i["id"]) for i in items],
    )
