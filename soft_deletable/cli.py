#!/usr/bin/env python3
"""
Command-line interface for soft-deletable.

Provides configuration checks, model inspection and record management
(listing, soft deleting, restoring and purging) for models declaring the
soft delete behavior.
"""

import importlib
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import click
import pandas as pd  # type: ignore[import-untyped]
from dateutil import parser as date_parser
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import Session, sessionmaker

from . import __version__
from .config import SoftDeleteConfig, get_config
from .soft_delete import (
    DeleteOutcome,
    MarkerType,
    ReadMode,
    SoftDeleteService,
    behavior_for,
    register_soft_delete_listeners,
)

console = Console()

STATES = {
    "active": ReadMode.EXCLUDE_DELETED,
    "deleted": ReadMode.ONLY_DELETED,
    "all": ReadMode.ALL,
}


def load_models(path: str) -> Any:
    """
    Import a declarative base from a ``module:attribute`` path.

    Args:
        path: Import path such as ``myapp.models:Base``

    Returns:
        The declarative base
    """
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise click.BadParameter(
            f"'{path}' must have the form module:Base", param_hint="--models"
        )

    if str(Path.cwd()) not in sys.path:
        sys.path.insert(0, str(Path.cwd()))

    module = importlib.import_module(module_name)
    try:
        return getattr(module, attribute)
    except AttributeError:
        raise click.BadParameter(
            f"Module {module_name} has no attribute {attribute}", param_hint="--models"
        )


def resolve_model(base: Any, name: str) -> Any:
    """Find a mapped class of a declarative base by class name."""
    for mapper in base.registry.mappers:
        if mapper.class_.__name__ == name:
            return mapper.class_
    raise click.BadParameter(f"Unknown model: {name}", param_hint="MODEL")


@contextmanager
def open_session(models: str, database_url: Optional[str]) -> Iterator[Tuple[Any, Session]]:
    """Register the listeners of a base on a fresh session factory."""
    url = database_url or get_config().database_url
    if not url:
        raise click.UsageError(
            "No database URL given; use --database-url or SOFT_DELETE_DATABASE_URL"
        )

    base = load_models(models)
    engine = create_engine(url)
    factory = sessionmaker(bind=engine)
    hooks = register_soft_delete_listeners(base, target=factory)
    try:
        with factory() as session:
            yield base, session
    finally:
        hooks.remove()
        engine.dispose()


def record_to_dict(record: Any) -> Dict[str, Any]:
    """Column values of a record, keyed by attribute name."""
    values = {}
    for attribute in inspect(record).mapper.column_attrs:
        value = getattr(record, attribute.key)
        if isinstance(value, datetime):
            value = value.isoformat()
        values[attribute.key] = value
    return values


def coerce_id(model: Any, value: str) -> Any:
    """Convert a command-line id to the python type of the primary key."""
    column = inspect(model).primary_key[0]
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    return python_type(value)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """soft-deletable - Soft deletion for SQLAlchemy models."""
    if ctx.invoked_subcommand is None:
        console.print(
            Panel.fit(
                f"[bold blue]soft-deletable[/bold blue] v{__version__}\n"
                "[dim]Soft deletion for SQLAlchemy models[/dim]\n\n"
                "Use [bold]soft-deletable --help[/bold] to see available commands.",
                border_style="blue",
            )
        )


@cli.group()
def config() -> None:
    """Manage soft delete configuration."""
    pass


@config.command("show")
@click.option("--format", type=click.Choice(["table", "json", "yaml"]), default="table")
def config_show(format: str) -> None:
    """Display current configuration."""
    try:
        config = get_config()
        config_dict = config.to_dict()

        if format == "json":
            console.print_json(data=config_dict)
        elif format == "yaml":
            import yaml  # type: ignore[import-untyped]

            console.print(yaml.dump(config_dict, default_flow_style=False))
        else:
            table = Table(title="Soft Delete Configuration", show_header=True)
            table.add_column("Setting", style="cyan")
            table.add_column("Value", style="green")
            table.add_column("Description", style="dim")

            for name, field_info in SoftDeleteConfig.model_fields.items():
                value = config_dict[name]
                if value is None:
                    value = "[dim]Not configured[/dim]"
                elif isinstance(value, bool):
                    value = "✓" if value else "✗"
                table.add_row(name, str(value), field_info.description or "")

            console.print(table)

    except Exception as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)


@config.command("validate")
@click.option(
    "--file",
    "path",
    type=click.Path(exists=True, dir_okay=False),
    help="Validate a JSON or YAML configuration file instead of the environment",
)
def config_validate(path: Optional[str]) -> None:
    """Validate configuration."""
    try:
        config = SoftDeleteConfig.from_file(path) if path else get_config()
    except Exception as e:
        console.print("[red]✗ Configuration validation failed:[/red]")
        console.print(f"  [red]• {e}[/red]")
        sys.exit(1)

    warnings = []
    if not config.enabled:
        warnings.append("Soft delete is disabled; deletes are physical")
    if config.cascade_restore and not config.cascade_delete:
        warnings.append("Restores cascade but deletes do not")
    if not config.database_url:
        warnings.append("No database URL configured for record commands")

    console.print("[green]✓ Configuration is valid[/green]")
    if warnings:
        console.print("\n[yellow]⚠ Warnings:[/yellow]")
        for warning in warnings:
            console.print(f"  [yellow]• {warning}[/yellow]")


@cli.group()
def models() -> None:
    """Inspect models declaring soft delete."""
    pass


@models.command("inspect")
@click.option("--models", "models_path", required=True, help="Declarative base as module:Base")
def models_inspect(models_path: str) -> None:
    """Show deletable models, their markers and associations."""
    hooks = None
    try:
        base = load_models(models_path)
        hooks = register_soft_delete_listeners(base)

        tree = Tree("[bold]Soft deletable models[/bold]")
        for model, behavior in sorted(
            hooks.behaviors.items(), key=lambda item: item[0].__name__
        ):
            if behavior.is_deletable:
                label = (
                    f"[cyan]{model.__name__}[/cyan] "
                    f"{behavior.field} ([green]{behavior.field_type.value}[/green])"
                )
            else:
                label = (
                    f"[cyan]{model.__name__}[/cyan] "
                    f"[red]{behavior.field} not mapped, deletes are physical[/red]"
                )
            branch = tree.add(label)

            for association in behavior.associations.values():
                flags = []
                if association.dependent:
                    flags.append("dependent")
                if behavior_for(association.target) is not None and association.conditions:
                    flags.append("filtered")
                suffix = f" [dim]({', '.join(flags)})[/dim]" if flags else ""
                branch.add(
                    f"{association.alias}: {association.kind.value} {association.target.__name__}{suffix}"
                )

        console.print(tree)

    except Exception as e:
        console.print(f"[red]Error inspecting models: {e}[/red]")
        sys.exit(1)
    finally:
        if hooks is not None:
            hooks.remove()


@cli.group()
def records() -> None:
    """List, delete, restore and purge records."""
    pass


def records_options(func: Any) -> Any:
    func = click.option(
        "--database-url", help="SQLAlchemy database URL (defaults to configuration)"
    )(func)
    func = click.option(
        "--models", "models_path", required=True, help="Declarative base as module:Base"
    )(func)
    return func


@records.command("list")
@click.argument("model_name")
@records_options
@click.option("--state", type=click.Choice(list(STATES)), default="active")
@click.option(
    "--deleted-since",
    help="Only records deleted at or after this date (timestamp markers)",
)
@click.option("--limit", type=int, default=100, help="Maximum records to return")
@click.option("--format", type=click.Choice(["table", "json", "csv"]), default="table")
def records_list(
    model_name: str,
    models_path: str,
    database_url: Optional[str],
    state: str,
    deleted_since: Optional[str],
    limit: int,
    format: str,
) -> None:
    """List records of a model."""
    try:
        with open_session(models_path, database_url) as (base, session):
            model = resolve_model(base, model_name)
            service = SoftDeleteService(session)

            criteria = []
            if deleted_since:
                behavior = service.behavior_for(model)
                if behavior.field_type is not MarkerType.DATETIME:
                    raise click.BadParameter(
                        f"{model_name} has no deletion timestamp",
                        param_hint="--deleted-since",
                    )
                try:
                    since = date_parser.parse(deleted_since)
                except (ValueError, OverflowError):
                    raise click.BadParameter(
                        f"'{deleted_since}' is not a date", param_hint="--deleted-since"
                    )
                criteria.append(getattr(model, behavior.field) >= since)

            rows: List[Dict[str, Any]] = [
                record_to_dict(record)
                for record in service.find(
                    model, *criteria, read_mode=STATES[state], limit=limit
                )
            ]

        if not rows:
            console.print(f"[yellow]No {state} {model_name} records found[/yellow]")
            return

        if format == "json":
            console.print_json(data=rows)
        elif format == "csv":
            df = pd.DataFrame(rows)
            print(df.to_csv(index=False))
        else:
            table = Table(title=f"{model_name} records ({state}, {len(rows)} shown)")
            for column in rows[0]:
                table.add_column(column, style="cyan")
            for row in rows:
                table.add_row(*["" if v is None else str(v) for v in row.values()])
            console.print(table)

    except click.ClickException:
        raise
    except Exception as e:
        console.print(f"[red]Error listing records: {e}[/red]")
        sys.exit(1)


@records.command("delete")
@click.argument("model_name")
@click.argument("entity_id")
@records_options
@click.option("--no-cascade", is_flag=True, help="Do not delete dependents")
def records_delete(
    model_name: str,
    entity_id: str,
    models_path: str,
    database_url: Optional[str],
    no_cascade: bool,
) -> None:
    """Soft delete a record (a second delete purges it)."""
    try:
        with open_session(models_path, database_url) as (base, session):
            model = resolve_model(base, model_name)
            service = SoftDeleteService(session)
            # Soft deleted records are loaded too; deleting them again purges
            with service.disabled(model):
                record = session.get(model, coerce_id(model, entity_id))
            if record is None:
                console.print(f"[red]✗ {model_name} {entity_id} not found[/red]")
                sys.exit(1)

            outcome = service.delete(record, cascade=False if no_cascade else None)
            session.commit()

        if outcome is DeleteOutcome.SOFT_DELETED:
            console.print(f"[green]✓ Soft deleted {model_name} {entity_id}[/green]")
        else:
            console.print(
                f"[yellow]✓ Physically deleted {model_name} {entity_id} "
                f"({outcome.value})[/yellow]"
            )

    except click.ClickException:
        raise
    except Exception as e:
        console.print(f"[red]Error deleting record: {e}[/red]")
        sys.exit(1)


@records.command("restore")
@click.argument("model_name")
@click.argument("entity_id")
@records_options
@click.option("--no-cascade", is_flag=True, help="Do not restore dependents")
def records_restore(
    model_name: str,
    entity_id: str,
    models_path: str,
    database_url: Optional[str],
    no_cascade: bool,
) -> None:
    """Restore a soft deleted record."""
    try:
        with open_session(models_path, database_url) as (base, session):
            model = resolve_model(base, model_name)
            restored = SoftDeleteService(session).restore(
                model, coerce_id(model, entity_id), cascade=False if no_cascade else None
            )
            session.commit()

        if not restored:
            console.print(f"[red]✗ {model_name} {entity_id} could not be restored[/red]")
            sys.exit(1)
        console.print(f"[green]✓ Restored {model_name} {entity_id}[/green]")

    except click.ClickException:
        raise
    except Exception as e:
        console.print(f"[red]Error restoring record: {e}[/red]")
        sys.exit(1)


@records.command("purge")
@click.argument("model_name")
@click.argument("entity_id")
@records_options
@click.confirmation_option(prompt="Permanently remove this record?")
def records_purge(
    model_name: str,
    entity_id: str,
    models_path: str,
    database_url: Optional[str],
) -> None:
    """Physically remove a soft deleted record."""
    try:
        with open_session(models_path, database_url) as (base, session):
            model = resolve_model(base, model_name)
            service = SoftDeleteService(session)
            with service.disabled(model):
                record = session.get(model, coerce_id(model, entity_id))
            if record is None:
                console.print(f"[red]✗ {model_name} {entity_id} not found[/red]")
                sys.exit(1)

            service.purge(record)
            session.commit()

        console.print(f"[green]✓ Purged {model_name} {entity_id}[/green]")

    except click.ClickException:
        raise
    except Exception as e:
        console.print(f"[red]Error purging record: {e}[/red]")
        sys.exit(1)


def main() -> None:
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
