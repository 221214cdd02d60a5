"""Tests for package exports and public API.

Verifies that all __init__.py files export the expected names, that
__all__ lists are defined and accurate, and that top-level convenience
imports work correctly.
"""

import importlib


# ============================================================================
# Top-level package exports
# ============================================================================


class TestTopLevelExports:
    """Tests for src/normstore/__init__.py exports."""

    def test_version_defined(self) -> None:
        """Package __version__ is defined and is a string."""
        import normstore

        assert isinstance(normstore.__version__, str)
        assert normstore.__version__ == "0.1.0"

    def test_all_names_are_importable(self) -> None:
        """Every name in __all__ is actually accessible on the module."""
        import normstore

        for name in normstore.__all__:
            assert hasattr(normstore, name), (
                f"'{name}' is in __all__ but not accessible on normstore"
            )

    def test_core_exports(self) -> None:
        """Session, Table and views importable from top level."""
        from normstore import RecordSetView, RecordView, Session, Table, ViewFactory

        for cls in (Session, Table, RecordView, RecordSetView, ViewFactory):
            assert isinstance(cls, type)

    def test_error_hierarchy(self) -> None:
        """All store errors share one base class."""
        from normstore import (
            InvalidOperationError,
            NormStoreError,
            RecordNotFoundError,
            SchemaError,
            UnregisteredTableError,
        )

        for cls in (RecordNotFoundError, UnregisteredTableError, InvalidOperationError, SchemaError):
            assert issubclass(cls, NormStoreError)


# ============================================================================
# Subpackage exports
# ============================================================================


class TestSubpackageExports:
    """Each subpackage's __all__ resolves."""

    def test_subpackage_all_lists(self) -> None:
        for module_name in ("normstore.schema", "normstore.config"):
            module = importlib.import_module(module_name)
            assert isinstance(module.__all__, list)
            for name in module.__all__:
                assert hasattr(module, name), f"{module_name} missing {name}"

    def test_cli_main_callable(self) -> None:
        from normstore.cli import main

        assert callable(main)
