from __future__ import annotations

import streamlit as st
import pandas as pd

from ledger.config import get_settings
from ledger.db import get_conn, ensure_schema
from ledger.services.customers import list_customers, refresh_delivery_due
from ledger.services.demo_data import upsert_reference_data
from ledger.services.inventory import low_stock_items
from ledger.services.reports import dashboard_stats

st.set_page_config(page_title="Water Ledger", page_icon="💧", layout="wide")

st.title("💧 Water Ledger — Dashboard")
st.caption("Customers, deliveries, stock and empty-bottle deposits for a bottled-water distributor.")

settings = get_settings()
conn = get_conn(settings.db_path)
ensure_schema(conn)
upsert_reference_data(conn)

# Delivery flags follow the weekday; recompute once per session.
if not st.session_state.get("delivery_due_refreshed"):
    refresh_delivery_due(conn)
    st.session_state["delivery_due_refreshed"] = True

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Database:** `{settings.db_path.name}`")

stats = dashboard_stats(conn)
c1, c2, c3, c4 = st.columns(4)
c1.metric("Revenue today", f"{settings.currency} {stats['revenue_today']:,.0f}")
c2.metric("Pending balance", f"{settings.currency} {stats['pending_balance']:,.0f}")
c3.metric("Deliveries due", f"{stats['deliveries_due']}")
c4.metric("Empty bottles out", f"{stats['empty_bottles_out']}")

st.divider()
st.subheader("Needs attention")
attention = [c for c in list_customers(conn) if int(c["delivery_due_today"]) or float(c["total_balance"]) > 0]
if attention:
    st.dataframe(
        pd.DataFrame([
            {
                "name": c["name"],
                "mobile": c["mobile"],
                "balance": float(c["total_balance"]),
                "due today": bool(c["delivery_due_today"]),
            }
            for c in attention
        ]),
        use_container_width=True,
        hide_index=True,
    )
else:
    st.caption("No deliveries due and no pending balances.")

low = low_stock_items(conn)
if low:
    st.warning(f"{len(low)} inventory item(s) at or below their low-stock threshold.")
