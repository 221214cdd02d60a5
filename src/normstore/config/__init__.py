"""Configuration management: TOML loading and config models.

Usage:
    >>> from normstore.config import load_store_config, StoreConfig, StoreOptions
"""

from normstore.config.loader import load_store_config
from normstore.config.models import (
    ForeignKeyConfig,
    StoreConfig,
    StoreOptions,
    TableConfig,
)

__all__ = [
    "load_store_config",
    "StoreConfig",
    "StoreOptions",
    "TableConfig",
    "ForeignKeyConfig",
]
