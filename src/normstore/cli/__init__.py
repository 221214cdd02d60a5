"""CLI for inspecting store schemas and normalizing JSON payloads.

Usage:
    normstore schema --config store.toml
    normstore load --config store.toml --table posts posts.json
    normstore load --config store.toml --table posts posts.json --state state.json --json

Commands:
    schema  - Show tables, primary keys, foreign keys and relations
    load    - Insert a JSON payload into a session and show the committed state
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from normstore.config.loader import load_store_config
from normstore.config.models import StoreConfig
from normstore.errors import NormStoreError
from normstore.schema.table import StoreSchema
from normstore.session import Session
from normstore.snapshot import changed_tables, state_from_dict, state_to_dict

console = Console()


# ============================================================================
# Helpers
# ============================================================================


def _configure_logging(level: str, verbose: bool = False) -> None:
    """Route library logging through rich at the configured level."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_schema(config_path: str) -> tuple[StoreConfig, StoreSchema]:
    """Load store.toml and link it into a StoreSchema.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValidationError: If the config shape is invalid.
        SchemaError: If the declared tables do not link.
    """
    config = load_store_config(Path(config_path))
    return config, StoreSchema.from_config(config)


def _read_json(path: str):
    return json.loads(Path(path).read_text())


# ============================================================================
# Command implementations
# ============================================================================


def cmd_schema(args: argparse.Namespace) -> int:
    """Print the linked schema.

    Returns:
        0 on success, 1 if the config cannot be loaded.
    """
    try:
        config, schema = _load_schema(args.config)
    except (FileNotFoundError, ValidationError, NormStoreError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    _configure_logging(config.options.log_level, args.verbose)

    table = Table(title="Store Schema", show_header=True, header_style="bold")
    table.add_column("Table", style="cyan")
    table.add_column("PK")
    table.add_column("Foreign keys")
    table.add_column("Relations")

    for table_schema in schema:
        foreign_keys = [
            f"{f.name} -> {f.references} (as {f.prop_name})"
            for f in table_schema.fields
            if f.is_foreign_key
        ]
        relations = [
            f"{r.relation_name} <- {r.table}.{r.name}" for r in table_schema.relations
        ]
        table.add_row(
            table_schema.name,
            table_schema.pk,
            "\n".join(foreign_keys) or "[dim]-[/dim]",
            "\n".join(relations) or "[dim]-[/dim]",
        )

    console.print(table)
    return 0


def cmd_load(args: argparse.Namespace) -> int:
    """Insert a JSON payload into a fresh session and commit it.

    Returns:
        0 on success, 1 on any config, input or store error.
    """
    try:
        config, schema = _load_schema(args.config)
    except (FileNotFoundError, ValidationError, NormStoreError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    _configure_logging(config.options.log_level, args.verbose)

    if args.table not in schema:
        console.print(
            f"[red]Error: unknown table {args.table!r}.[/red] "
            f"[dim]Available: {', '.join(schema.names)}[/dim]"
        )
        return 1

    try:
        payload = _read_json(args.data)
        initial = state_from_dict(_read_json(args.state)) if args.state else {}
    except (FileNotFoundError, json.JSONDecodeError, ValueError) as e:
        console.print(f"[red]Error reading input: {escape(str(e))}[/red]")
        return 1

    session = Session(initial, schema)
    try:
        views = session.tables[args.table].insert_many(payload)
    except NormStoreError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    state = session.commit()
    changed = changed_tables(initial, state)

    if args.json:
        console.print_json(json.dumps(state_to_dict(state), default=str))
        return 0

    console.print(
        f"[bold green]v[/bold green] Inserted {len(views)} "
        f"[cyan]{args.table}[/cyan] record(s)"
    )

    summary = Table(title="Committed State", show_header=True, header_style="bold")
    summary.add_column("Table", style="cyan")
    summary.add_column("Records", justify="right")
    summary.add_column("Changed")
    for name in schema.names:
        snapshot = state.get(name)
        summary.add_row(
            name,
            str(len(snapshot)) if snapshot is not None else "0",
            "[green]yes[/green]" if name in changed else "[dim]no[/dim]",
        )
    console.print(summary)
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def _global_options(parser: argparse.ArgumentParser, default_config, default_verbose) -> None:
    parser.add_argument(
        "--config",
        default=default_config,
        help="Path to store.toml (default: ./store.toml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=default_verbose,
        help="Enable debug logging",
    )


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.
    ``--config`` and ``--verbose`` are accepted before or after the command.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="normstore",
        description="Inspect normalized store schemas and payloads",
    )
    _global_options(parser, "store.toml", False)

    # Suppressed defaults so a subcommand never overwrites the top-level values
    common = argparse.ArgumentParser(add_help=False)
    _global_options(common, argparse.SUPPRESS, argparse.SUPPRESS)

    subparsers = parser.add_subparsers(dest="command", required=True)

    # schema command
    p_schema = subparsers.add_parser(
        "schema",
        parents=[common],
        help="Show tables, foreign keys and relations",
    )
    p_schema.set_defaults(func=cmd_schema)

    # load command
    p_load = subparsers.add_parser(
        "load",
        parents=[common],
        help="Insert a JSON payload and show the committed state",
    )
    p_load.add_argument(
        "data",
        help="Path to a JSON file holding one record or a list of records",
    )
    p_load.add_argument(
        "--table",
        "-t",
        required=True,
        help="Table the payload is inserted into",
    )
    p_load.add_argument(
        "--state",
        help="Path to a JSON state file to start from",
    )
    p_load.add_argument(
        "--json",
        action="store_true",
        help="Print the committed state as JSON",
    )
    p_load.set_defaults(func=cmd_load)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
