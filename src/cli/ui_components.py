"""CLI UI components (Rich).

Why separate components:
- Keeps command logic apart from presentation details.
- Tables and panels are reused by several commands.
"""

from __future__ import annotations

from typing import Any, Iterable

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import BloodGlucoseEntry, DeviceStatus, Snapshot, Treatment
from core.domain.results import OperationResult
from core.domain.units import BloodGlucoseUnit


def print_banner(console: Console) -> None:
    """Print the welcome banner.

    Why here:
    - Avoids circular imports (main <-> doctor).
    - Lets non-interactive modes (JSON/pipelines) skip it.
    """

    title = Text("nightscout-client", style="bold cyan")
    subtitle = Text("Entries • Treatments • Profiles • Device status", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def _time(value: Any) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value is not None else "-"


def _number(value: float | None, digits: int = 1) -> str:
    return "-" if value is None else f"{value:.{digits}f}"


def build_status_panel(snapshot: Snapshot) -> Panel:
    status = snapshot.status
    body = Text()
    body.append(f"{status.title}\n", style="bold")
    body.append(f"Version: {status.version}\n")
    body.append(f"Units: {status.units.label()}\n")
    body.append(f"API enabled: {'yes' if status.api_enabled else 'no'}\n")
    body.append(f"Snapshot taken: {_time(snapshot.timestamp)}", style="dim")
    return Panel(body, title=Text("Site status", style="bold green"), border_style="green")


def build_entries_table(entries: Iterable[BloodGlucoseEntry], units: BloodGlucoseUnit) -> Table:
    digits = 0 if units is BloodGlucoseUnit.MG_DL else 1
    table = Table(title="Glucose entries")
    table.add_column("Time", style="cyan", no_wrap=True)
    table.add_column(f"Value ({units.label()})", style="white", justify="right")
    table.add_column("Trend", style="magenta")
    table.add_column("Type", style="dim")
    for entry in sorted(entries, key=lambda e: e.date, reverse=True):
        table.add_row(
            _time(entry.date),
            _number(entry.value_in(units), digits),
            entry.direction.value if entry.direction else "-",
            entry.entry_type.value,
        )
    return table


def build_treatments_table(treatments: Iterable[Treatment]) -> Table:
    table = Table(title="Treatments")
    table.add_column("Time", style="cyan", no_wrap=True)
    table.add_column("Event", style="white")
    table.add_column("Insulin (U)", justify="right")
    table.add_column("Carbs (g)", justify="right")
    table.add_column("Notes", style="dim")
    for treatment in sorted(treatments, key=lambda t: t.created_at, reverse=True):
        table.add_row(
            _time(treatment.created_at),
            treatment.event_type,
            _number(treatment.insulin, 2),
            _number(treatment.carbs, 0),
            treatment.notes or "",
        )
    return table


def build_device_status_table(device_statuses: Iterable[DeviceStatus]) -> Table:
    table = Table(title="Device statuses")
    table.add_column("Time", style="cyan", no_wrap=True)
    table.add_column("Device", style="white")
    table.add_column("Uploader battery", justify="right")
    for status in sorted(device_statuses, key=lambda s: s.created_at, reverse=True):
        battery = (status.uploader or {}).get("battery")
        table.add_row(_time(status.created_at), status.device, f"{battery}%" if battery is not None else "-")
    return table


def print_snapshot(console: Console, snapshot: Snapshot, units: BloodGlucoseUnit | None = None) -> None:
    units = units or snapshot.status.units
    console.print(build_status_panel(snapshot))
    console.print(build_entries_table(snapshot.entries, units))
    console.print(build_treatments_table(snapshot.treatments))
    console.print(build_device_status_table(snapshot.device_statuses))
    profile_names = ", ".join(r.default_profile_name for r in snapshot.profile_records) or "-"
    console.print(f"[dim]Profile records:[/dim] {len(snapshot.profile_records)} (default: {profile_names})")


def build_operation_table(title: str, result: OperationResult[Any]) -> Table:
    """One row per item: processed, or rejected with its error."""

    table = Table(title=title)
    table.add_column("Item", style="cyan", no_wrap=True)
    table.add_column("Outcome")
    table.add_column("Error", style="red")
    for item in result.processed_items:
        table.add_row(str(getattr(item, "id", item)), "[green]processed[/green]", "")
    for rejection in result.rejections:
        table.add_row(str(getattr(rejection.item, "id", rejection.item)), "[red]rejected[/red]", str(rejection.error))
    return table
