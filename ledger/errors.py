from __future__ import annotations


class LedgerError(ValueError):
    """Base for operation failures that leave the ledger unchanged."""


class CustomerNotFound(LedgerError):
    def __init__(self, customer_id: int):
        self.customer_id = int(customer_id)
        super().__init__("Customer not found!")


class SaleNotFound(LedgerError):
    def __init__(self, sale_id: int):
        self.sale_id = int(sale_id)
        super().__init__(f"Sale {sale_id} not found.")


class InventoryItemNotFound(LedgerError):
    def __init__(self, item_id: int):
        self.item_id = int(item_id)
        super().__init__(f"Inventory item {item_id} not found.")


class NoInventoryMatch(LedgerError):
    def __init__(self, category: str | None):
        self.category = category
        super().__init__("No inventory item found for this sale category.")


class InsufficientStock(LedgerError):
    def __init__(self, item_name: str, available: int):
        self.item_name = item_name
        self.available = int(available)
        super().__init__(f"Insufficient stock for {item_name}! Only {available} available.")


class MonthCloseFailed(LedgerError):
    def __init__(self):
        super().__init__("Failed to close month. See logs for details.")
