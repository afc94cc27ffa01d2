"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from adapters.downloader import NightscoutDownloader
from adapters.uploader import NightscoutUploader
from core.config import NightscoutSettings, get_user_env_file, write_user_env_vars
from core.domain.credentials import NightscoutCredentials
from core.domain.errors import NightscoutError

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_status(settings: NightscoutSettings, credentials: NightscoutCredentials) -> tuple[bool, str]:
    try:
        async with NightscoutDownloader(credentials, settings=settings) as downloader:
            status = await downloader.fetch_status()
        return True, f"{status.title} (version {status.version})"
    except NightscoutError as exc:
        return False, str(exc)


async def _check_authorization(settings: NightscoutSettings, credentials: NightscoutCredentials) -> tuple[bool, str]:
    try:
        async with NightscoutUploader(credentials, settings=settings) as uploader:
            await uploader.verify_authorization()
        return True, "Write access granted"
    except NightscoutError as exc:
        return False, str(exc)


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = NightscoutSettings()

    table = Table(title="Nightscout Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    table.add_row("User config", "OK" if get_user_env_file().exists() else "OPTIONAL", str(get_user_env_file()))

    try:
        credentials = NightscoutCredentials.from_settings(settings)
    except NightscoutError as exc:
        table.add_row("Site URL", "FAIL", str(exc))
        _console.print(table)
        _console.print("\n[yellow]Hint:[/yellow] run `nightscout doctor setup` to store the site URL.")
        raise typer.Exit(code=1)
    table.add_row("Site URL", "OK", credentials.url)

    ok_status, detail_status = asyncio.run(_check_status(settings, credentials))
    table.add_row("Status endpoint", "OK" if ok_status else "FAIL", detail_status)

    if credentials.api_secret is None:
        table.add_row("API secret", "OPTIONAL", "No secret set -> read-only access")
    else:
        ok_auth, detail_auth = asyncio.run(_check_authorization(settings, credentials))
        table.add_row("API secret", "OK" if ok_auth else "FAIL", detail_auth)

    _console.print(table)


@app.command(name="setup")
def setup() -> None:
    """Interactive setup (stores the site URL and secret in the user config .env)."""

    url = typer.prompt("Nightscout URL").strip()
    api_secret = typer.prompt("API secret (leave empty for read-only)", default="", hide_input=True, show_default=False)

    try:
        NightscoutCredentials(url=url, api_secret=api_secret or None)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid URL: {url!r}") from exc

    values = {"NIGHTSCOUT_URL": url}
    if api_secret.strip():
        values["NIGHTSCOUT_API_SECRET"] = api_secret.strip()
    env_path = write_user_env_vars(values)

    _console.print(f"[green]Saved Nightscout config to:[/green] {env_path}")
