"""Mold registry command-line interface implemented with Typer."""

from __future__ import annotations

import json
import sys
from dataclasses import asdict, dataclass
from typing import Any, Callable

from alembic.util import CommandError
from sqlalchemy.exc import SQLAlchemyError
import typer

from config import settings
from models import Mold, MoldLog, MoldLogView, MoldView
from molds.audit_log_repository import MoldAuditLogRepository
from molds.errors import (
    DuplicateIdError,
    InvalidTransitionError,
    MoldNotFoundError,
    PersistenceError,
    ValidationError,
)
from molds.registry_service import MoldRegistryService
from molds.repository import MoldRepository, StatusSummary
from observability import configure_logging
from services.database import get_session_factory, run_migrations_sync
from time_utils import to_local

SUCCESS_EXIT_CODE = 0
VALIDATION_ERROR_EXIT_CODE = 2
DOMAIN_ERROR_EXIT_CODE = 3
PERSISTENCE_ERROR_EXIT_CODE = 4

NO_CHANGE = "no change"


@dataclass(frozen=True)
class CliConfig:
    """Global CLI runtime options shared by every command."""

    database_url: str
    as_json: bool
    strict_transitions: bool


def _serialize(value: Any) -> Any:
    """Convert result objects to JSON-serializable structures."""
    if value is None:
        return None
    if isinstance(value, MoldLog):
        return MoldLogView.model_validate(value).model_dump(mode="json")
    if isinstance(value, StatusSummary):
        return asdict(value)
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    if isinstance(value, Mold):
        return MoldView.model_validate(value).model_dump(mode="json")
    return value


def _emit_output(result: Any, as_json: bool) -> None:
    """Render command output in requested format."""
    if as_json:
        typer.echo(json.dumps(_serialize(result), sort_keys=True, separators=(",", ":")))
        return
    typer.echo(_render_human(result))


def _emit_error(exc: Exception, as_json: bool) -> None:
    """Render mapped registry errors to stderr."""
    if as_json:
        typer.echo(json.dumps({"error": str(exc)}), err=True)
        return
    typer.echo(f"error: {exc}", err=True)


def _render_human(result: Any) -> str:
    """Return human-oriented rendering for recognized result shapes."""
    if result is None:
        return NO_CHANGE
    if isinstance(result, str):
        return result
    if isinstance(result, MoldLog):
        return _render_log_entry(result)
    if isinstance(result, StatusSummary):
        return _render_summary(result)
    if isinstance(result, list):
        if len(result) == 0:
            return "No entries found."
        if isinstance(result[0], MoldLog):
            return "\n".join(_render_log_entry(entry) for entry in result)
        return "\n".join(_render_mold(mold) for mold in result)
    return str(result)


def _render_log_entry(entry: MoldLog) -> str:
    """Render one audit entry as a single line."""
    stamp = to_local(entry.timestamp).strftime("%Y-%m-%d %H:%M:%S")
    line = f"{stamp} {entry.action:<11} {entry.mold_id}: {entry.note}"
    details: list[str] = []
    if entry.operator_name:
        details.append(f"operator={entry.operator_name}")
    if entry.machine:
        details.append(f"machine={entry.machine}")
    if entry.shots_added is not None:
        details.append(f"shots_added={entry.shots_added}")
    if details:
        line = f"{line} ({', '.join(details)})"
    return line


def _render_mold(mold: Mold) -> str:
    """Render one mold as a single line."""
    line = (
        f"- {mold.id} [{mold.status}] {mold.name} "
        f"({mold.current_shots}/{mold.max_shots} shots)"
    )
    if mold.operator_name:
        line = f"{line} held by {mold.operator_name} on {mold.machine}"
    return line


def _render_summary(summary: StatusSummary) -> str:
    """Render status counts for a quick dashboard view."""
    return "\n".join(
        [
            f"Total: {summary.total}",
            f"Available: {summary.available}",
            f"In use: {summary.in_use}",
            f"Maintenance: {summary.maintenance}",
        ]
    )


def _run_command(cfg: CliConfig, invoke: Callable[[Callable[[], Any]], Any]) -> None:
    """Execute one registry call and map outputs/errors to process semantics."""
    try:
        result = invoke(get_session_factory(cfg.database_url))
    except ValidationError as exc:
        _emit_error(exc, cfg.as_json)
        raise typer.Exit(code=VALIDATION_ERROR_EXIT_CODE) from exc
    except (DuplicateIdError, InvalidTransitionError, MoldNotFoundError) as exc:
        _emit_error(exc, cfg.as_json)
        raise typer.Exit(code=DOMAIN_ERROR_EXIT_CODE) from exc
    except PersistenceError as exc:
        _emit_error(exc, cfg.as_json)
        raise typer.Exit(code=PERSISTENCE_ERROR_EXIT_CODE) from exc

    _emit_output(result, cfg.as_json)
    raise typer.Exit(code=SUCCESS_EXIT_CODE)


def _registry(cfg: CliConfig, session_factory: Callable[[], Any]) -> MoldRegistryService:
    """Return a registry service honoring the CLI transition policy."""
    return MoldRegistryService(session_factory, strict_transitions=cfg.strict_transitions)


def _require_config(ctx: typer.Context) -> CliConfig:
    """Return required CLI config from Typer context."""
    config = ctx.obj
    if not isinstance(config, CliConfig):
        raise RuntimeError("CLI configuration not initialized")
    return config


app = typer.Typer(no_args_is_help=True, help="Mold registry command-line interface")


@app.callback()
def main(
    ctx: typer.Context,
    database_url: str = typer.Option(
        settings.database_url,
        help="SQLAlchemy database URL",
    ),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON output"),
    lenient: bool = typer.Option(
        not settings.registry.strict_transitions,
        "--lenient/--strict",
        help="Ignore wrong-state operations instead of failing",
    ),
    log_level: str = typer.Option(settings.log_level, help="Log level for stderr logs"),
) -> None:
    """Store global options for all registry commands."""
    configure_logging(level=log_level, json_output=settings.log_json, stream=sys.stderr)
    ctx.obj = CliConfig(
        database_url=database_url,
        as_json=as_json,
        strict_transitions=not lenient,
    )


@app.command("init-db")
def init_db_command(ctx: typer.Context) -> None:
    """Create or upgrade the registry schema."""
    cfg = _require_config(ctx)

    def invoke(_session_factory: Callable[[], Any]) -> str:
        try:
            run_migrations_sync(cfg.database_url)
        except (CommandError, SQLAlchemyError) as exc:
            raise PersistenceError(f"migration failed: {exc}") from exc
        return "ok"

    _run_command(cfg, invoke)


@app.command("create")
def create_command(
    ctx: typer.Context,
    model: str = typer.Argument(..., help="Mold model code"),
    asset_suffix: str = typer.Argument(..., help="Asset suffix appended to the model"),
    name: str = typer.Argument(..., help="Descriptive mold name"),
    max_shots: int = typer.Option(..., "--max-shots", help="Designed lifetime in shots"),
) -> None:
    """Register a new mold."""
    cfg = _require_config(ctx)
    _run_command(
        cfg,
        lambda factory: _registry(cfg, factory).create(
            model=model,
            asset_suffix=asset_suffix,
            name=name,
            max_shots=max_shots,
        ),
    )


@app.command("checkout")
def checkout_command(
    ctx: typer.Context,
    mold_id: str = typer.Argument(..., help="Mold id"),
    operator_name: str = typer.Option(..., "--operator", help="Operator taking the mold"),
    machine: str = typer.Option(..., "--machine", help="Machine the mold is mounted on"),
) -> None:
    """Check an available mold out to an operator."""
    cfg = _require_config(ctx)
    _run_command(
        cfg,
        lambda factory: _registry(cfg, factory).checkout(
            mold_id,
            operator_name=operator_name,
            machine=machine,
        ),
    )


@app.command("return")
def return_command(
    ctx: typer.Context,
    mold_id: str = typer.Argument(..., help="Mold id"),
    shots_added: int = typer.Option(..., "--shots", help="Shots produced since checkout"),
) -> None:
    """Return an in-use mold and record its shots."""
    cfg = _require_config(ctx)
    _run_command(
        cfg,
        lambda factory: _registry(cfg, factory).return_mold(mold_id, shots_added=shots_added),
    )


@app.command("maintain")
def maintain_command(
    ctx: typer.Context,
    mold_id: str = typer.Argument(..., help="Mold id"),
) -> None:
    """Complete maintenance on a mold."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda factory: _registry(cfg, factory).maintain(mold_id))


@app.command("delete")
def delete_command(
    ctx: typer.Context,
    mold_id: str = typer.Argument(..., help="Mold id"),
) -> None:
    """Delete a mold; its audit history is kept."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda factory: _registry(cfg, factory).delete(mold_id))


@app.command("list")
def list_command(
    ctx: typer.Context,
    search: str = typer.Option("", help="Substring to match on id, name or model"),
) -> None:
    """List molds, optionally filtered."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda factory: MoldRepository(factory).list_molds(search=search))


@app.command("logs")
def logs_command(
    ctx: typer.Context,
    mold_id: str = typer.Option("", "--mold-id", help="Only show entries for this mold"),
    limit: int = typer.Option(
        settings.registry.log_page_size,
        min=1,
        help="Maximum number of entries",
    ),
) -> None:
    """Show audit log entries, most recent first."""
    cfg = _require_config(ctx)

    def invoke(factory: Callable[[], Any]) -> list[MoldLog]:
        repository = MoldAuditLogRepository(factory)
        if mold_id.strip():
            return repository.list_for_mold(mold_id.strip(), limit=limit)
        return repository.list_entries(limit=limit)

    _run_command(cfg, invoke)


@app.command("summary")
def summary_command(ctx: typer.Context) -> None:
    """Show mold counts per status."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda factory: MoldRepository(factory).count_by_status())


if __name__ == "__main__":
    app()
