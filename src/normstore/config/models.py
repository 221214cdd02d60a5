"""Pydantic models for store configuration."""

from pydantic import BaseModel, Field


# ============================================================================
# Configuration Models
# ============================================================================


class ForeignKeyConfig(BaseModel):
    """Foreign key entry from store.toml (keyed by the FK field name)."""

    references: str
    prop_name: str | None = None
    relation_name: str | None = None


class TableConfig(BaseModel):
    """One ``[tables.<name>]`` section of store.toml."""

    pk: str = "id"
    fields: list[str] = Field(default_factory=list)
    foreign_keys: dict[str, ForeignKeyConfig] = Field(default_factory=dict)


class StoreOptions(BaseModel):
    """Runtime options from the ``[options]`` section."""

    log_level: str = "WARNING"


class StoreConfig(BaseModel):
    """Complete store configuration from store.toml."""

    tables: dict[str, TableConfig]
    options: StoreOptions = Field(default_factory=StoreOptions)
