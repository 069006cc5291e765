from __future__ import annotations

import streamlit as st

st.set_page_config(page_title="Water Ledger", page_icon="💧", layout="wide")

pages = [
    st.Page("home.py", title="Dashboard", icon="🏠"),
    st.Page("pages/1_👥_Customers.py", title="Customers", icon="👥"),
    st.Page("pages/2_🛒_Sales.py", title="Sales", icon="🛒"),
    st.Page("pages/3_📦_Inventory.py", title="Inventory", icon="📦"),
    st.Page("pages/4_💸_Expenses_&_Salesmen.py", title="Expenses & Salesmen", icon="💸"),
    st.Page("pages/5_🗓️_Month_Close.py", title="Month Close & Reports", icon="🗓️"),
    st.Page("pages/6_🧪_Data_Management.py", title="Data Management", icon="🧪"),
]

st.navigation(pages).run()
