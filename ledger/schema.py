SCHEMA_SQL = r"""
-- Salesmen
CREATE TABLE IF NOT EXISTS salesmen (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  mobile TEXT,
  hire_date TEXT                           -- ISO date
);

-- Customers (running totals are denormalized, kept in sync by the sale operations)
CREATE TABLE IF NOT EXISTS customers (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  house_number TEXT,
  floor INTEGER,
  mobile TEXT,
  delivery_area TEXT,
  salesman_id INTEGER,                     -- lookup only, no FK
  daily_requirement INTEGER,
  delivery_days TEXT NOT NULL DEFAULT '',  -- comma separated weekday names

  bottles_purchased INTEGER NOT NULL DEFAULT 0,
  paid_bottles INTEGER NOT NULL DEFAULT 0,
  total_balance REAL NOT NULL DEFAULT 0,   -- signed; negative means credit
  empty_bottles_on_hand INTEGER NOT NULL DEFAULT 0,
  delivery_due_today INTEGER NOT NULL DEFAULT 0
);

-- Inventory items (stock keeping units)
CREATE TABLE IF NOT EXISTS inventory_items (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  category TEXT NOT NULL DEFAULT '',
  stock INTEGER NOT NULL DEFAULT 0,
  low_stock_threshold INTEGER NOT NULL DEFAULT 0,
  sell_price REAL                          -- optional, authoritative unit price
);

-- Stock audit log (purged when its item is deleted)
CREATE TABLE IF NOT EXISTS stock_adjustments (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  item_id INTEGER NOT NULL,
  date TEXT NOT NULL,                      -- ISO date
  quantity_change INTEGER NOT NULL,
  reason TEXT NOT NULL,
  adjusted_by TEXT NOT NULL
);

-- Sales (customer_id 0 = counter / walk-in sale)
CREATE TABLE IF NOT EXISTS sales (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  customer_id INTEGER NOT NULL,
  customer_name TEXT NOT NULL,
  bottles_sold INTEGER NOT NULL DEFAULT 0,
  bottles_returned INTEGER NOT NULL DEFAULT 0,
  amount_received REAL NOT NULL DEFAULT 0,
  unit_price REAL,                         -- snapshot of sell_price at sale time
  bottle_category TEXT,
  bottle_item_id INTEGER,
  date TEXT NOT NULL,                      -- ISO date
  is_counter_sale INTEGER NOT NULL DEFAULT 0,
  salesman_id INTEGER,
  description TEXT,
  payment_method TEXT                      -- cash / bank
);

-- Empty bottle deposit ledger
CREATE TABLE IF NOT EXISTS bottle_logs (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  customer_id INTEGER NOT NULL,
  date TEXT NOT NULL,
  bottles_taken INTEGER NOT NULL DEFAULT 0,
  bottles_returned INTEGER NOT NULL DEFAULT 0
);

-- Expenses
CREATE TABLE IF NOT EXISTS expenses (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  date TEXT NOT NULL,
  name TEXT,
  category TEXT,
  description TEXT NOT NULL DEFAULT '',
  amount REAL NOT NULL,
  payment_account TEXT                     -- cash / bank
);

-- Salesman payouts
CREATE TABLE IF NOT EXISTS salesman_payments (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  salesman_id INTEGER NOT NULL,
  amount REAL NOT NULL,
  date TEXT NOT NULL
);

-- Month-end snapshots (never updated once written)
CREATE TABLE IF NOT EXISTS monthly_closings (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  period_start TEXT NOT NULL,
  period_end TEXT NOT NULL,
  created_at TEXT NOT NULL,                -- ISO datetime
  sales_json TEXT NOT NULL,
  expenses_json TEXT NOT NULL,
  total_revenue REAL NOT NULL,
  total_expenses REAL NOT NULL
);

-- Scalar slots (warehouse_stock)
CREATE TABLE IF NOT EXISTS app_state (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL
);
"""
