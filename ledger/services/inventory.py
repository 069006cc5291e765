from __future__ import annotations

import logging
from typing import Optional

from ledger.config import ADMIN_USER, DEFAULT_BOTTLE_TOKEN, OPENING_WAREHOUSE_STOCK, SYSTEM_USER
from ledger.db import get_state, q, set_state, transaction, x
from ledger.errors import InsufficientStock, InventoryItemNotFound, NoInventoryMatch
from ledger.utils import iso_today

logger = logging.getLogger(__name__)

WAREHOUSE_KEY = "warehouse_stock"


# -------------------------
# Matcher
# -------------------------

def resolve_items(conn, category: Optional[str], *, default_token: str = DEFAULT_BOTTLE_TOKEN) -> list:
    """
    Inventory rows a sale of `category` debits (or a reversal credits).

    Match on exact category or case-sensitive substring of the name. With no
    category, or no match, fall back to names containing `default_token`.
    """
    items = q(conn, "SELECT * FROM inventory_items ORDER BY id")

    matched = []
    if category:
        matched = [i for i in items if i["category"] == category or category in str(i["name"])]
    if not matched:
        matched = [i for i in items if default_token in str(i["name"])]
    if not matched:
        raise NoInventoryMatch(category)
    return matched


def ensure_sufficient(items: list, qty: int) -> None:
    # All-or-nothing: every matched row must cover the full quantity.
    for i in items:
        if int(i["stock"]) < int(qty):
            raise InsufficientStock(str(i["name"]), int(i["stock"]))


def apply_stock_change(
    conn,
    items: list,
    qty_change: int,
    *,
    reason: str,
    adjusted_by: str = SYSTEM_USER,
    on: Optional[str] = None,
) -> None:
    """
    Shifts every item in `items` by the same signed quantity and logs one
    adjustment per item. Callers run this inside transaction().
    """
    day = on or iso_today()
    for i in items:
        x(conn, "UPDATE inventory_items SET stock = stock + ? WHERE id=?", (int(qty_change), int(i["id"])))
        log_adjustment(
            conn,
            item_id=int(i["id"]),
            quantity_change=int(qty_change),
            reason=reason,
            adjusted_by=adjusted_by,
            on=day,
        )


def log_adjustment(conn, *, item_id: int, quantity_change: int, reason: str, adjusted_by: str, on: Optional[str] = None) -> int:
    return x(
        conn,
        """
        INSERT INTO stock_adjustments (item_id, date, quantity_change, reason, adjusted_by)
        VALUES (?, ?, ?, ?, ?)
        """,
        (int(item_id), on or iso_today(), int(quantity_change), str(reason), str(adjusted_by)),
    )


# -------------------------
# Warehouse pool
# -------------------------

def warehouse_stock(conn) -> int:
    v = get_state(conn, WAREHOUSE_KEY)
    return int(v) if v is not None else int(OPENING_WAREHOUSE_STOCK)


def set_warehouse_stock(conn, value: int) -> None:
    if int(value) < 0:
        raise ValueError("Warehouse stock cannot be negative.")
    set_state(conn, WAREHOUSE_KEY, int(value))


# -------------------------
# Items
# -------------------------

def get_item(conn, item_id: int):
    rows = q(conn, "SELECT * FROM inventory_items WHERE id=?", (int(item_id),))
    return rows[0] if rows else None


def list_items(conn):
    return q(conn, "SELECT * FROM inventory_items ORDER BY id DESC")


def low_stock_items(conn):
    return q(
        conn,
        "SELECT * FROM inventory_items WHERE stock = 0 OR stock < low_stock_threshold ORDER BY stock ASC, name",
    )


def item_history(conn, item_id: int):
    return q(
        conn,
        "SELECT * FROM stock_adjustments WHERE item_id=? ORDER BY date DESC, id DESC",
        (int(item_id),),
    )


def _normalize_price(sell_price) -> Optional[float]:
    if sell_price is None or sell_price == "":
        return None
    try:
        p = float(sell_price)
    except (TypeError, ValueError):
        raise ValueError("Sell price must be a number.")
    if p < 0:
        raise ValueError("Sell price must be >= 0.")
    return p


def add_item(
    conn,
    *,
    name: str,
    category: str,
    stock: int = 0,
    low_stock_threshold: int = 0,
    sell_price: Optional[float] = None,
) -> int:
    """
    New SKU. Opening stock is drawn from the warehouse pool (floored at zero)
    and recorded as a transfer adjustment.
    """
    name = str(name or "").strip()
    if not name:
        raise ValueError("Item name is required.")
    if int(stock) < 0:
        raise ValueError("Stock must be >= 0.")
    if int(low_stock_threshold) < 0:
        raise ValueError("Low stock threshold must be >= 0.")
    price = _normalize_price(sell_price)

    with transaction(conn):
        item_id = x(
            conn,
            """
            INSERT INTO inventory_items (name, category, stock, low_stock_threshold, sell_price)
            VALUES (?, ?, ?, ?, ?)
            """,
            (name, str(category or "").strip(), int(stock), int(low_stock_threshold), price),
        )
        if int(stock) > 0:
            set_warehouse_stock(conn, max(0, warehouse_stock(conn) - int(stock)))
            log_adjustment(
                conn,
                item_id=item_id,
                quantity_change=int(stock),
                reason="Received to inventory from warehouse",
                adjusted_by=SYSTEM_USER,
            )

    logger.info("Added inventory item %s (%s) with stock %s", item_id, name, stock)
    return int(item_id)


def update_item(
    conn,
    item_id: int,
    *,
    name: Optional[str] = None,
    category: Optional[str] = None,
    low_stock_threshold: Optional[int] = None,
    sell_price: Optional[float] = None,
    clear_sell_price: bool = False,
) -> None:
    # Stock is changed only through adjust_stock() so the audit log stays complete.
    item = get_item(conn, item_id)
    if item is None:
        raise InventoryItemNotFound(item_id)

    new_name = str(name).strip() if name is not None else str(item["name"])
    if not new_name:
        raise ValueError("Item name is required.")
    new_category = str(category).strip() if category is not None else str(item["category"])
    new_threshold = int(low_stock_threshold) if low_stock_threshold is not None else int(item["low_stock_threshold"])
    if new_threshold < 0:
        raise ValueError("Low stock threshold must be >= 0.")
    if clear_sell_price:
        new_price = None
    elif sell_price is not None:
        new_price = _normalize_price(sell_price)
    else:
        new_price = item["sell_price"]

    x(
        conn,
        "UPDATE inventory_items SET name=?, category=?, low_stock_threshold=?, sell_price=? WHERE id=?",
        (new_name, new_category, new_threshold, new_price, int(item_id)),
    )


def adjust_stock(conn, item_id: int, *, new_stock: int, reason: str, adjusted_by: str = ADMIN_USER) -> int:
    """
    Sets an item's stock to `new_stock`. The difference moves between the item
    and the warehouse pool: raising stock draws from the pool (floored at zero),
    lowering it returns units to the pool. Returns the signed change.
    """
    item = get_item(conn, item_id)
    if item is None:
        raise InventoryItemNotFound(item_id)
    if int(new_stock) < 0:
        raise ValueError("Stock cannot be negative.")
    reason = str(reason or "").strip()
    if not reason:
        raise ValueError("A reason is required for stock adjustments.")

    diff = int(new_stock) - int(item["stock"])

    with transaction(conn):
        x(conn, "UPDATE inventory_items SET stock=? WHERE id=?", (int(new_stock), int(item_id)))
        ws = warehouse_stock(conn)
        if diff > 0:
            set_warehouse_stock(conn, max(0, ws - diff))
        elif diff < 0:
            set_warehouse_stock(conn, ws + abs(diff))
        log_adjustment(conn, item_id=int(item_id), quantity_change=diff, reason=reason, adjusted_by=adjusted_by)

    logger.info("Adjusted stock of item %s by %+d (%s)", item_id, diff, reason)
    return diff


def delete_item(conn, item_id: int) -> int:
    """
    Deletes an item and its whole adjustment history. Remaining stock goes
    back to the warehouse pool. Returns the units returned.
    """
    item = get_item(conn, item_id)
    if item is None:
        raise InventoryItemNotFound(item_id)

    returned = max(0, int(item["stock"]))
    with transaction(conn):
        if returned > 0:
            set_warehouse_stock(conn, warehouse_stock(conn) + returned)
        x(conn, "DELETE FROM inventory_items WHERE id=?", (int(item_id),))
        x(conn, "DELETE FROM stock_adjustments WHERE item_id=?", (int(item_id),))

    logger.info("Deleted inventory item %s; returned %s to warehouse", item_id, returned)
    return returned


def inventory_summary(conn):
    return q(
        conn,
        """
        SELECT
          i.id,
          i.name,
          i.category,
          i.stock,
          i.low_stock_threshold,
          i.sell_price,
          CASE WHEN i.stock = 0 OR i.stock < i.low_stock_threshold THEN 1 ELSE 0 END AS low_stock,
          ROUND(i.stock * COALESCE(i.sell_price, 0), 2) AS stock_value,
          (SELECT COUNT(1) FROM stock_adjustments sa WHERE sa.item_id = i.id) AS adjustments
        FROM inventory_items i
        ORDER BY i.id DESC
        """,
    )
