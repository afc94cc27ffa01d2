"""`nightscout` command line.

Why Typer + Rich:
- Typer turns typed function signatures into commands and options.
- Rich renders snapshot tables and error panels readably in a terminal.
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, NoReturn, Optional

import typer
from rich.console import Console

from adapters.downloader import NightscoutDownloader
from adapters.json_exporter import export_snapshot_json
from adapters.uploader import NightscoutUploader
from cli import doctor
from cli.ui_components import build_operation_table, print_banner, print_snapshot
from core.config import NightscoutSettings
from core.domain.credentials import NightscoutCredentials
from core.domain.errors import NightscoutError
from core.domain.models import Snapshot
from core.domain.results import OperationResult
from core.domain.units import BloodGlucoseUnit
from core.logging import bind_context, clear_context, configure_logging

app = typer.Typer(no_args_is_help=True, help="Read from and write to a Nightscout site.")
app.add_typer(doctor.app, name="doctor")

_console = Console()


def _load_settings(verbose: bool) -> NightscoutSettings:
    settings = NightscoutSettings()
    configure_logging("DEBUG" if verbose else settings.log_level, json_format=settings.log_json)
    return settings


@contextmanager
def _site_context(settings: NightscoutSettings) -> Iterator[NightscoutCredentials]:
    """Credentials for the configured site, with `site` bound on every log line."""

    credentials = NightscoutCredentials.from_settings(settings)
    bind_context(site=credentials.url)
    try:
        yield credentials
    finally:
        clear_context()


def _fail(error: NightscoutError) -> NoReturn:
    _console.print(f"[red]Error:[/red] {error}")
    if error.recovery_suggestion:
        _console.print(f"[yellow]Hint:[/yellow] {error.recovery_suggestion}")
    raise typer.Exit(code=1)


async def _take_snapshot(
    settings: NightscoutSettings, credentials: NightscoutCredentials, count: int
) -> Snapshot:
    async with NightscoutDownloader(credentials, settings=settings) as downloader:
        return await downloader.snapshot(count, count, count)


@app.command()
def snapshot(
    count: int = typer.Option(10, "--count", "-n", min=1, help="Recent records per collection."),
    units: Optional[str] = typer.Option(None, "--units", help="Display units (mg/dl or mmol); defaults to the site's."),
    json_output: Optional[Path] = typer.Option(None, "--json-output", help="Also write the snapshot to this JSON file."),
    no_banner: bool = typer.Option(False, "--no-banner", help="Skip the banner."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Fetch status, recent entries, treatments, device statuses and profiles at once."""

    settings = _load_settings(verbose)
    if not no_banner:
        print_banner(_console)
    try:
        with _site_context(settings) as credentials:
            result = asyncio.run(_take_snapshot(settings, credentials, count))
    except NightscoutError as exc:
        _fail(exc)

    print_snapshot(_console, result, BloodGlucoseUnit.parse(units) if units else None)
    if json_output is not None:
        path = export_snapshot_json(snapshot=result, output_path=json_output)
        _console.print(f"[green]Snapshot saved to:[/green] {path}")


async def _verify(settings: NightscoutSettings, credentials: NightscoutCredentials) -> None:
    async with NightscoutUploader(credentials, settings=settings) as uploader:
        await uploader.verify_authorization()


@app.command()
def verify(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging.")) -> None:
    """Check that the configured API secret grants write access."""

    settings = _load_settings(verbose)
    try:
        with _site_context(settings) as credentials:
            asyncio.run(_verify(settings, credentials))
    except NightscoutError as exc:
        _fail(exc)
    _console.print("[green]Authorized.[/green]")


async def _delete_treatments(
    settings: NightscoutSettings, credentials: NightscoutCredentials, ids: list[str], search: int
) -> OperationResult:
    async with NightscoutDownloader(credentials, settings=settings) as downloader:
        recent = await downloader.fetch_most_recent_treatments(count=search)
    wanted = set(ids)
    targets = [treatment for treatment in recent if treatment.id in wanted]
    missing = wanted - {treatment.id for treatment in targets}
    if missing:
        _console.print(f"[yellow]Not found among the last {search} treatments:[/yellow] {', '.join(sorted(missing))}")
    async with NightscoutUploader(credentials, settings=settings) as uploader:
        return await uploader.delete_treatments(targets)


@app.command(name="delete-treatments")
def delete_treatments(
    ids: list[str] = typer.Argument(..., help="Treatment ids (`_id`) to delete."),
    search: int = typer.Option(100, "--search", min=1, help="How many recent treatments to look the ids up in."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Delete treatments by id; each one succeeds or fails on its own."""

    settings = _load_settings(verbose)
    try:
        with _site_context(settings) as credentials:
            result = asyncio.run(_delete_treatments(settings, credentials, ids, search))
    except NightscoutError as exc:
        _fail(exc)
    _console.print(build_operation_table("Deleted treatments", result))
    if result.rejections:
        raise typer.Exit(code=1)


def run() -> None:
    app()
