from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

import streamlit as st

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "WATER_LEDGER_DATA_DIR"
ENV_LOG_LEVEL = "WATER_LEDGER_LOG_LEVEL"

# Ledger constants
DEFAULT_BOTTLE_TOKEN = "19-Liter"
OPENING_WAREHOUSE_STOCK = 1000
SYSTEM_USER = "System"
ADMIN_USER = "Admin"
COUNTER_SALE_CUSTOMER_ID = 0
COUNTER_SALE_NAME = "Counter Sale"

LOGGER_NAME = "ledger"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    currency: str = "PKR"
    log_level: str = "INFO"


def _default_data_dir() -> Path:
    return Path.home() / ".water_ledger"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logging.getLogger(LOGGER_NAME).warning("Ignoring unreadable settings file %s", cfg)
            return {}
    return {}


def persist_data_dir(data_dir_str: str) -> None:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    cfg = data_dir / CONFIG_FILE_NAME
    payload = {"data_dir": str(data_dir)}
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # Update session for immediate effect
    st.session_state["water_ledger_data_dir"] = str(data_dir)


def setup_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(str(level).upper())
    logger.propagate = False
    return logger


@st.cache_resource
def get_settings() -> Settings:
    # Priority order:
    # 1) Session state (set via Data Management page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    if "water_ledger_data_dir" in st.session_state:
        data_dir = Path(st.session_state["water_ledger_data_dir"]).expanduser().resolve()
    elif os.getenv(ENV_DATA_DIR):
        data_dir = Path(os.getenv(ENV_DATA_DIR, "")).expanduser().resolve()
    else:
        default_dir = _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        data_dir = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()

    data_dir.mkdir(parents=True, exist_ok=True)
    db_path = data_dir / "ledger.db"
    log_level = os.getenv(ENV_LOG_LEVEL, "INFO")
    setup_logging(log_level)
    return Settings(data_dir=data_dir, db_path=db_path, log_level=log_level)
