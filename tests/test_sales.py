from datetime import date

import pytest

from conftest import count, row
from ledger.errors import CustomerNotFound, InsufficientStock, NoInventoryMatch, SaleNotFound
from ledger.services.sales import add_counter_sale, add_sale, delete_sale, edit_sale, get_sale


def _snapshot(conn, customer_id, item_id):
    c = row(conn, "customers", customer_id)
    i = row(conn, "inventory_items", item_id)
    return {
        "bottles_purchased": c["bottles_purchased"],
        "paid_bottles": c["paid_bottles"],
        "total_balance": c["total_balance"],
        "empty_bottles_on_hand": c["empty_bottles_on_hand"],
        "stock": i["stock"],
    }


def test_add_sale_prices_from_item_and_moves_every_ledger(conn, customer_id, bottle_item):
    res = add_sale(
        conn,
        customer_id=customer_id,
        bottles_sold=2,
        amount_received=200,
        bottle_item_id=bottle_item,
        update_balance=True,
    )

    c = row(conn, "customers", customer_id)
    assert c["total_balance"] == 40
    assert c["bottles_purchased"] == 2
    assert c["paid_bottles"] == 1
    assert c["empty_bottles_on_hand"] == 2
    assert row(conn, "inventory_items", bottle_item)["stock"] == 8

    adjustments = conn.execute("SELECT * FROM stock_adjustments").fetchall()
    assert len(adjustments) == 1
    assert adjustments[0]["quantity_change"] == -2
    assert adjustments[0]["reason"] == "Sale to Ibrahim Pasha"
    assert adjustments[0]["adjusted_by"] == "System"

    logs = conn.execute("SELECT * FROM bottle_logs").fetchall()
    assert len(logs) == 1
    assert logs[0]["bottles_taken"] == 2
    assert logs[0]["bottles_returned"] == 0

    sale = get_sale(conn, res.sale_id)
    assert sale["unit_price"] == 120
    assert sale["date"] == date.today().isoformat()
    assert res.balance_delta == 40
    assert res.items_adjusted == [bottle_item]


def test_delete_sale_reverses_stock_and_balance_but_not_paid_bottles(conn, customer_id, bottle_item):
    before = _snapshot(conn, customer_id, bottle_item)
    res = add_sale(conn, customer_id=customer_id, bottles_sold=2, amount_received=200, bottle_item_id=bottle_item)

    delete_sale(conn, res.sale_id)

    after = _snapshot(conn, customer_id, bottle_item)
    assert after["total_balance"] == 0
    assert after["stock"] == before["stock"] == 10
    assert after["bottles_purchased"] == before["bottles_purchased"]
    assert after["empty_bottles_on_hand"] == before["empty_bottles_on_hand"]
    # no payment ledger to undo against
    assert after["paid_bottles"] == 1

    reversal = conn.execute("SELECT * FROM stock_adjustments WHERE quantity_change > 0").fetchall()
    assert len(reversal) == 1
    assert reversal[0]["quantity_change"] == 2
    assert f"ID: {res.sale_id}" in reversal[0]["reason"]

    assert get_sale(conn, res.sale_id) is None
    assert count(conn, "bottle_logs") == 1


def test_selling_exact_stock_empties_item_and_one_more_is_rejected(conn, customer_id, insert_item):
    item = insert_item(name="19-Liter Bottle", category="Containers", stock=3, sell_price=100.0)

    add_sale(conn, customer_id=customer_id, bottles_sold=3, amount_received=0, bottle_item_id=item)
    assert row(conn, "inventory_items", item)["stock"] == 0

    item2 = insert_item(name="5-Liter Bottle", category="Small", stock=3, sell_price=40.0)
    with pytest.raises(InsufficientStock) as err:
        add_sale(
            conn, customer_id=customer_id, bottles_sold=4, amount_received=0, bottle_category="Small", bottle_item_id=item2
        )
    assert err.value.item_name == "5-Liter Bottle"
    assert err.value.available == 3
    assert row(conn, "inventory_items", item2)["stock"] == 3
    assert count(conn, "sales") == 1


def test_rejected_sale_leaves_every_collection_untouched(conn, customer_id):
    with pytest.raises(NoInventoryMatch):
        add_sale(conn, customer_id=customer_id, bottles_sold=1, amount_received=100, bottle_category="Jugs")

    c = row(conn, "customers", customer_id)
    assert c["total_balance"] == 0
    assert c["bottles_purchased"] == 0
    assert count(conn, "sales") == 0
    assert count(conn, "bottle_logs") == 0
    assert count(conn, "stock_adjustments") == 0


def test_unknown_customer(conn, bottle_item):
    with pytest.raises(CustomerNotFound):
        add_sale(conn, customer_id=999, bottles_sold=1, amount_received=0, bottle_item_id=bottle_item)
    assert row(conn, "inventory_items", bottle_item)["stock"] == 10


def test_every_matched_item_is_debited_the_full_quantity(conn, customer_id, insert_item):
    a = insert_item(name="19-Liter Bottle", category="Containers", stock=10, sell_price=120.0)
    b = insert_item(name="19-Liter Cap Set", category="Supplies", stock=5)

    add_sale(conn, customer_id=customer_id, bottles_sold=2, amount_received=240, bottle_item_id=a)

    assert row(conn, "inventory_items", a)["stock"] == 8
    assert row(conn, "inventory_items", b)["stock"] == 3
    assert count(conn, "stock_adjustments", "quantity_change = -2") == 2


def test_balance_tracks_sum_of_sales(conn, customer_id, bottle_item, insert_item):
    small = insert_item(name="5-Liter Bottle", category="Small", stock=50, sell_price=40.0)
    sales = [
        (2, 200, bottle_item, None),
        (1, 0, bottle_item, None),
        (3, 150, small, "Small"),
        (0, 500, None, None),
    ]
    expected = 0.0
    for sold, amount, item_id, category in sales:
        res = add_sale(
            conn,
            customer_id=customer_id,
            bottles_sold=sold,
            amount_received=amount,
            bottle_item_id=item_id,
            bottle_category=category,
        )
        expected += sold * res.unit_price - amount

    assert row(conn, "customers", customer_id)["total_balance"] == pytest.approx(expected)
    assert expected == 40 + 120 - 30 - 500


def test_update_balance_off_still_moves_empties(conn, customer_id, bottle_item):
    add_sale(
        conn,
        customer_id=customer_id,
        bottles_sold=2,
        bottles_returned=5,
        amount_received=100,
        bottle_item_id=bottle_item,
        update_balance=False,
    )
    c = row(conn, "customers", customer_id)
    assert c["total_balance"] == 0
    assert c["paid_bottles"] == 0
    assert c["empty_bottles_on_hand"] == -3
    assert c["bottles_purchased"] == 2


def test_returns_only_sale_writes_bottle_log_without_touching_stock(conn, customer_id, bottle_item):
    res = add_sale(conn, customer_id=customer_id, bottles_sold=0, bottles_returned=2, amount_received=0)
    assert res.items_adjusted == []
    assert res.bottle_log_id is not None
    assert row(conn, "inventory_items", bottle_item)["stock"] == 10
    assert row(conn, "customers", customer_id)["empty_bottles_on_hand"] == -2


def test_unpriced_item_keeps_amount_as_only_cash_figure(conn, customer_id, insert_item):
    item = insert_item(name="19-Liter Bottle", category="Containers", stock=5)
    res = add_sale(conn, customer_id=customer_id, bottles_sold=1, amount_received=90, bottle_item_id=item)
    assert res.unit_price == 0
    assert get_sale(conn, res.sale_id)["unit_price"] is None
    c = row(conn, "customers", customer_id)
    assert c["total_balance"] == -90
    assert c["paid_bottles"] == 0


def test_negative_quantities_are_rejected(conn, customer_id):
    with pytest.raises(ValueError):
        add_sale(conn, customer_id=customer_id, bottles_sold=-1, amount_received=0)


def test_edit_amount_moves_balance_by_negative_delta(conn, customer_id, bottle_item):
    res = add_sale(conn, customer_id=customer_id, bottles_sold=2, amount_received=200, bottle_item_id=bottle_item)

    delta = edit_sale(conn, res.sale_id, amount_received=240, description="paid in full")

    assert delta == -40
    assert row(conn, "customers", customer_id)["total_balance"] == 0
    sale = get_sale(conn, res.sale_id)
    assert sale["amount_received"] == 240
    assert sale["description"] == "paid in full"
    assert sale["bottles_sold"] == 2
    assert row(conn, "inventory_items", bottle_item)["stock"] == 8
    assert count(conn, "bottle_logs") == 1


def test_edit_date_only_leaves_balance(conn, customer_id, bottle_item):
    res = add_sale(conn, customer_id=customer_id, bottles_sold=1, amount_received=0, bottle_item_id=bottle_item)
    assert edit_sale(conn, res.sale_id, on="2024-05-03") == 0
    assert get_sale(conn, res.sale_id)["date"] == "2024-05-03"
    assert row(conn, "customers", customer_id)["total_balance"] == 120


def test_counter_sale_edit_and_delete_do_not_touch_customers(conn, customer_id):
    sale_id = add_counter_sale(conn, amount=50, description="3 small bottles")
    sale = get_sale(conn, sale_id)
    assert sale["customer_id"] == 0
    assert sale["customer_name"] == "Counter Sale"
    assert sale["is_counter_sale"] == 1

    edit_sale(conn, sale_id, amount_received=80)
    delete_sale(conn, sale_id)

    assert row(conn, "customers", customer_id)["total_balance"] == 0
    assert count(conn, "sales") == 0


def test_delete_unknown_sale(conn):
    with pytest.raises(SaleNotFound):
        delete_sale(conn, 42)


def test_delete_after_item_removed_still_reverses_customer(conn, customer_id, bottle_item):
    res = add_sale(conn, customer_id=customer_id, bottles_sold=2, amount_received=0, bottle_item_id=bottle_item)
    conn.execute("DELETE FROM inventory_items")
    conn.commit()

    delete_sale(conn, res.sale_id)

    c = row(conn, "customers", customer_id)
    assert c["total_balance"] == 0
    assert c["bottles_purchased"] == 0
    assert count(conn, "stock_adjustments", "quantity_change > 0") == 0
