from __future__ import annotations

from datetime import date, timedelta

from ledger.config import OPENING_WAREHOUSE_STOCK
from ledger.db import ensure_schema, q, transaction, x
from ledger.services.inventory import WAREHOUSE_KEY, set_warehouse_stock
from ledger.services.customers import refresh_delivery_due

# Order matters: dependents first.
TABLES = [
    "monthly_closings",
    "salesman_payments",
    "expenses",
    "bottle_logs",
    "sales",
    "stock_adjustments",
    "inventory_items",
    "customers",
    "salesmen",
    "app_state",
]

DEMO_SALESMEN = [
    ("Ali Khan", "923001234567", "2023-01-15"),
    ("Bilal Ahmed", "923017654321", "2023-03-10"),
]

# name, category, stock, low_stock_threshold, sell_price
DEMO_INVENTORY = [
    ("19-Liter Bottle", "Containers", 150, 50, 120.0),
    ("Bottle Caps", "Supplies", 800, 200, 2.0),
    ("RO Filters", "Parts", 15, 5, 500.0),
]

# name, house, floor, mobile, salesman idx, daily req, days,
# bottles purchased, paid bottles, balance, empties
DEMO_CUSTOMERS = [
    ("Ibrahim Pasha", "123-B", 2, "923331122333", 0, 2, "Monday,Thursday", 50, 45, 500.0, 5),
    ("Fatima Jinnah", "45-C", 1, "923214455666", 1, 1, "Tuesday,Friday", 20, 20, 0.0, 2),
    ("Zain Abdullah", "88-F", 5, "923118877665", 0, 1, "Wednesday,Saturday,Monday", 15, 10, 500.0, 3),
]


def is_empty(conn) -> bool:
    counts = q(
        conn,
        """
        SELECT
          (SELECT COUNT(1) FROM customers) +
          (SELECT COUNT(1) FROM inventory_items) +
          (SELECT COUNT(1) FROM sales) +
          (SELECT COUNT(1) FROM app_state) AS n
        """,
    )
    return int(counts[0]["n"]) == 0


def upsert_reference_data(conn) -> None:
    # A brand-new store starts from the demo book, like a first launch.
    ensure_schema(conn)
    if is_empty(conn):
        load_demo_data(conn)


def wipe_all(conn) -> None:
    # Keep schema, delete data.
    with transaction(conn):
        for t in TABLES:
            x(conn, f"DELETE FROM {t};")


def load_demo_data(conn, *, today: date | None = None) -> None:
    today = today or date.today()
    t = today.isoformat()
    older = "2024-05-20"

    with transaction(conn):
        salesman_ids = [
            x(conn, "INSERT INTO salesmen (name, mobile, hire_date) VALUES (?, ?, ?)", row)
            for row in DEMO_SALESMEN
        ]

        item_ids = [
            x(
                conn,
                """
                INSERT INTO inventory_items (name, category, stock, low_stock_threshold, sell_price)
                VALUES (?, ?, ?, ?, ?)
                """,
                row,
            )
            for row in DEMO_INVENTORY
        ]

        customer_ids = []
        for name, house, floor, mobile, sm, req, days, bought, paid, bal, empties in DEMO_CUSTOMERS:
            customer_ids.append(
                x(
                    conn,
                    """
                    INSERT INTO customers (
                        name, house_number, floor, mobile, salesman_id, daily_requirement,
                        delivery_days, bottles_purchased, paid_bottles, total_balance,
                        empty_bottles_on_hand
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (name, house, floor, mobile, salesman_ids[sm], req, days, bought, paid, bal, empties),
                )
            )

        ibrahim, fatima, zain = customer_ids
        sales = [
            (ibrahim, "Ibrahim Pasha", 2, 2, 240.0, 120.0, "19-Liter", item_ids[0], t, 0, salesman_ids[0], None),
            (zain, "Zain Abdullah", 1, 1, 0.0, 120.0, "19-Liter", item_ids[0], t, 0, salesman_ids[0], None),
            (fatima, "Fatima Jinnah", 1, 0, 2.0, 2.0, "5-Liter", item_ids[1], older, 0, salesman_ids[1], None),
            (0, "Counter Sale", 0, 0, 50.0, None, "1-Liter", None, t, 1, None, "3 small bottles"),
        ]
        for row in sales:
            x(
                conn,
                """
                INSERT INTO sales (
                    customer_id, customer_name, bottles_sold, bottles_returned,
                    amount_received, unit_price, bottle_category, bottle_item_id,
                    date, is_counter_sale, salesman_id, description
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                row,
            )

        for cid, day, taken, returned in [(ibrahim, t, 2, 2), (zain, t, 1, 1), (ibrahim, older, 2, 1)]:
            x(
                conn,
                "INSERT INTO bottle_logs (customer_id, date, bottles_taken, bottles_returned) VALUES (?, ?, ?, ?)",
                (cid, day, taken, returned),
            )

        for day, category, desc, amount in [
            (t, "Utilities", "Electricity Bill", 15000.0),
            ("2024-05-15", "Maintenance", "Filter Replacement", 5000.0),
        ]:
            x(
                conn,
                "INSERT INTO expenses (date, category, description, amount) VALUES (?, ?, ?, ?)",
                (day, category, desc, amount),
            )

        for sm, amount, day in [(0, 5000.0, t), (1, 4500.0, "2024-05-18")]:
            x(
                conn,
                "INSERT INTO salesman_payments (salesman_id, amount, date) VALUES (?, ?, ?)",
                (salesman_ids[sm], amount, day),
            )

        for item, day, change, reason in [
            (0, "2024-05-10", 200, "Received Shipment"),
            (0, "2024-05-12", -5, "Damaged Goods"),
            (2, "2024-05-15", -1, "Maintenance Use"),
        ]:
            x(
                conn,
                """
                INSERT INTO stock_adjustments (item_id, date, quantity_change, reason, adjusted_by)
                VALUES (?, ?, ?, ?, 'Admin')
                """,
                (item_ids[item], day, change, reason),
            )

        if not q(conn, "SELECT 1 FROM app_state WHERE key=?", (WAREHOUSE_KEY,)):
            set_warehouse_stock(conn, OPENING_WAREHOUSE_STOCK)

        refresh_delivery_due(conn, today)
