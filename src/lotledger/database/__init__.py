"""Database package initialization."""

from .crud import (
    batch_save_items,
    create_item,
    delete_item,
    get_item,
    get_setting,
    list_items,
    save_item,
    set_setting,
    to_item,
)
from .engine import AsyncSessionLocal, close_db, init_db
from .models import AppSetting, Base, StockItem

__all__ = [
    # Models
    "Base",
    "StockItem",
    "AppSetting",
    # Engine
    "AsyncSessionLocal",
    "init_db",
    "close_db",
    # CRUD - Items
    "create_item",
    "get_item",
    "list_items",
    "save_item",
    "batch_save_items",
    "delete_item",
    "to_item",
    # CRUD - Settings
    "get_setting",
    "set_setting",
]
