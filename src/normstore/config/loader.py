"""Store configuration loader.

Reads a TOML file describing tables, their fields and foreign keys.

Example store.toml:
    [options]
    log_level = "INFO"

    [tables.authors]
    fields = ["name"]

    [tables.posts]
    fields = ["title"]

    [tables.posts.foreign_keys.author_id]
    references = "authors"
    relation_name = "posts"
"""

import tomllib
from pathlib import Path

from normstore.config.models import StoreConfig


def load_store_config(config_path: Path | None = None) -> StoreConfig:
    """Load store configuration from TOML file.

    Args:
        config_path: Path to store.toml (default: ./store.toml)

    Returns:
        StoreConfig with all tables and options

    Raises:
        FileNotFoundError: If config file doesn't exist
        pydantic.ValidationError: If config format is invalid
    """
    if config_path is None:
        config_path = Path.cwd() / "store.toml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Store config not found: {config_path}\n"
            f"Create a store.toml with a [tables.<name>] section per table."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    return StoreConfig(
        tables=data.get("tables", {}),
        options=data.get("options", {}),
    )
