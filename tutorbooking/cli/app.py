"""
Main CLI application using Typer.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.credentials import CredentialStore
from ..adapters.memory_store import MOCK_DATA_FILE, InMemoryAppointmentStore
from ..adapters.rest_store import RestAppointmentStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import (
    ConfigError,
    InvalidRange,
    MissingCounterparty,
    NotFoundError,
    NotPermitted,
    OutsideBusinessHours,
    PersistenceError,
    SlotConflict,
)
from ..domain.models import (
    WEEKDAY_NAMES,
    BookingRequest,
    BusinessHoursPolicy,
    Role,
    SlotStatus,
)
from ..services.booking_service import BookingService

app = typer.Typer(
    name="tutorbooking",
    help="Nachhilfe-Termine: freie Slots anzeigen, buchen und stornieren",
    add_completion=False
)

console = Console()

STATUS_STYLES = {
    SlotStatus.AVAILABLE: ("frei", "green"),
    SlotStatus.BOOKED: ("belegt", "red"),
    SlotStatus.UNAVAILABLE: ("geschlossen", "dim"),
}


@dataclass
class CliState:
    config_file: Optional[Path] = None
    mock: bool = False


def _load_config(state: CliState) -> AppConfig:
    """Load the config file; without an explicit file, missing config means defaults."""
    if state.config_file is not None:
        return AppConfig.load_from_yaml(state.config_file)

    config_path = get_default_config_path()
    if not config_path.exists():
        return AppConfig()
    return AppConfig.load_from_yaml(config_path)


def _build_service(config: AppConfig, mock: bool) -> BookingService:
    policy = config.to_policy()

    if mock:
        console.print("[yellow]⚠  MOCK-MODUS: Verwende Test-Daten[/yellow]\n")
        store = InMemoryAppointmentStore.from_json(
            config.mock_data or MOCK_DATA_FILE,
            timezone=config.timezone
        )
    else:
        api_key = config.resolve_api_key(CredentialStore())
        store = RestAppointmentStore(
            base_url=config.backend.url,
            api_key=api_key,
            timezone=config.timezone,
            timeout=config.backend.timeout_seconds
        )

    return BookingService(store=store, policy=policy)


def describe_policy(policy: BusinessHoursPolicy) -> str:
    """Human readable opening hours, e.g. 'Mo 15:00 - 19:00, Sa 10:00 - 15:00'."""
    parts = [
        f"{WEEKDAY_NAMES[day][:2]} {policy.hours[day]}"
        for day in sorted(policy.hours)
    ]
    return ", ".join(parts) if parts else "keine"


def error_message(error: Exception, role: Role, policy: BusinessHoursPolicy) -> str:
    """Map a returned error to the text shown to the user."""
    if isinstance(error, InvalidRange):
        return "Die Endzeit muss nach der Startzeit liegen."
    if isinstance(error, OutsideBusinessHours):
        return (
            "Terminbuchung nur innerhalb der Öffnungszeiten möglich "
            f"({describe_policy(policy)} Uhr)."
        )
    if isinstance(error, SlotConflict):
        return "Dieser Zeitraum ist bereits belegt. Bitte wählen Sie einen anderen Zeitraum."
    if isinstance(error, MissingCounterparty):
        if role is Role.STUDENT:
            return "Bitte wählen Sie einen Lehrer aus."
        return "Bitte wählen Sie einen Schüler aus und geben Sie einen Titel an."
    if isinstance(error, NotPermitted):
        return f"Diese Aktion ist nicht erlaubt: {error}"
    if isinstance(error, NotFoundError):
        return "Der Termin wurde nicht gefunden."
    return f"Termin konnte nicht verarbeitet werden: {error}"


def _parse_datetime(date_str: str, time_str: str, tz: str):
    try:
        return pendulum.from_format(f"{date_str} {time_str}", "YYYY-MM-DD HH:mm", tz=tz)
    except ValueError as e:
        console.print(f"[red]Fehler beim Parsen von Datum/Uhrzeit '{date_str} {time_str}': {e}[/red]")
        raise typer.Exit(1)


def _parse_date(date_str: str, tz: str):
    try:
        return pendulum.from_format(date_str, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Fehler beim Parsen des Datums: {e}[/red]")
        raise typer.Exit(1)


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    mock: Annotated[bool, typer.Option("--mock", help="Mock-Daten nutzen statt des Backends.")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Ausführliche Log-Ausgabe.")] = False,
):
    """
    Nachhilfe-Termine verwalten.
    """
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    ctx.obj = CliState(config_file=config_file, mock=mock)


@app.command()
def hours(ctx: typer.Context):
    """
    Show the configured opening hours.
    """
    try:
        config = _load_config(ctx.obj)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)

    policy = config.to_policy()

    table = Table(
        title=f"Öffnungszeiten ({policy.timezone})",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Tag", style="bold yellow")
    table.add_column("Zeiten")

    for day in range(7):
        opening = policy.hours_for(day)
        table.add_row(WEEKDAY_NAMES[day], f"{opening} Uhr" if opening else "[dim]geschlossen[/dim]")

    console.print()
    console.print(table)
    console.print()


@app.command()
def slots(
    ctx: typer.Context,
    date: Annotated[str, typer.Argument(help="Datum (YYYY-MM-DD)")],
    teacher: Annotated[Optional[str], typer.Option("--teacher", "-t", help="Nur Termine dieses Lehrers berücksichtigen")] = None,
):
    """
    Show the slots of a day and whether they are free.

    Examples:

        tutorbooking --mock slots 2024-11-27

        tutorbooking slots 2024-11-30 --teacher teacher-anna
    """
    try:
        config = _load_config(ctx.obj)
        service = _build_service(config, ctx.obj.mock)
        day = _parse_date(date, config.timezone)
        schedule = service.day_schedule(day, teacher_id=teacher)

    except (FileNotFoundError, ValueError, ConfigError, PersistenceError) as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)

    if not service.engine.policy.is_open_on(day.weekday()):
        console.print(f"[yellow]⚠ Am {day.format('DD.MM.YYYY')} ist geschlossen.[/yellow]")
        return

    table = Table(
        title=f"Slots ({service.engine.policy.timezone})",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Slot", style="bold")
    table.add_column("Status")

    for view in schedule:
        label, style = STATUS_STYLES[view.status]
        table.add_row(view.slot.format_display(), f"[{style}]{label}[/{style}]")

    console.print()
    console.print(table)
    console.print()


@app.command()
def book(
    ctx: typer.Context,
    user: Annotated[str, typer.Option("--user", "-u", help="Eigene Benutzer-ID")],
    role: Annotated[Role, typer.Option("--role", "-r", help="Eigene Rolle")],
    date: Annotated[str, typer.Option("--date", help="Datum (YYYY-MM-DD)")],
    start: Annotated[str, typer.Option("--start", help="Startzeit (HH:mm)")],
    end: Annotated[str, typer.Option("--end", help="Endzeit (HH:mm)")],
    counterparty: Annotated[Optional[str], typer.Option("--with", "-w", help="Lehrer (für Schüler) bzw. Schüler (für Lehrer)")] = None,
    title: Annotated[Optional[str], typer.Option("--title", help="Titel des Termins")] = None,
    description: Annotated[Optional[str], typer.Option("--description", help="Beschreibung")] = None,
):
    """
    Book an appointment.

    Examples:

        tutorbooking --mock book -u student-max -r student -w teacher-anna --date 2024-11-27 --start 15:00 --end 16:00
    """
    try:
        config = _load_config(ctx.obj)
        service = _build_service(config, ctx.obj.mock)
    except (FileNotFoundError, ValueError, ConfigError, PersistenceError) as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)

    request = BookingRequest(
        requester_id=user,
        role=role,
        start=_parse_datetime(date, start, config.timezone),
        end=_parse_datetime(date, end, config.timezone),
        counterparty_id=counterparty,
        title=title,
        description=description,
    )

    result = service.submit(request)

    if not result.ok:
        message = error_message(result.error, role, service.engine.policy)
        console.print(f"[bold red]Fehler:[/bold red] {message}")
        raise typer.Exit(1)

    appointment = result.value
    headline = "Termin erfolgreich gebucht!" if role is Role.TEACHER else "Erfolgreich eingetragen!"
    console.print(f"[bold green]✓ {headline}[/bold green]")
    console.print(f"   {appointment.title}: {appointment.time_range}")
    console.print(f"   [dim]ID: {appointment.id}[/dim]\n")


@app.command(name="list")
def list_appointments(
    ctx: typer.Context,
    user: Annotated[str, typer.Option("--user", "-u", help="Eigene Benutzer-ID")],
    role: Annotated[Role, typer.Option("--role", "-r", help="Eigene Rolle")],
    date: Annotated[Optional[str], typer.Option("--date", help="Nur Termine an diesem Datum (YYYY-MM-DD)")] = None,
):
    """
    List your appointments.
    """
    try:
        config = _load_config(ctx.obj)
        service = _build_service(config, ctx.obj.mock)
        if date:
            appointments = service.appointments_on(_parse_date(date, config.timezone), user, role)
        else:
            appointments = service.appointments_for(user, role)

    except (FileNotFoundError, ValueError, ConfigError, PersistenceError) as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)

    if not appointments:
        console.print("[yellow]Keine Termine gefunden.[/yellow]")
        return

    now = pendulum.now(config.timezone)

    table = Table(
        title="Meine Termine" if role is not Role.ADMIN else "Alle Termine",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Zeit", style="bold")
    table.add_column("Titel")
    table.add_column("Lehrer")
    table.add_column("Schüler")
    table.add_column("Status")
    table.add_column("ID", style="dim")

    for appointment in appointments:
        table.add_row(
            str(appointment.time_range),
            appointment.title,
            appointment.teacher_id,
            appointment.student_id,
            appointment.effective_status(now).value,
            appointment.id
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def cancel(
    ctx: typer.Context,
    appointment_id: Annotated[str, typer.Argument(help="ID des Termins")],
    user: Annotated[str, typer.Option("--user", "-u", help="Eigene Benutzer-ID")],
    role: Annotated[Role, typer.Option("--role", "-r", help="Eigene Rolle")],
):
    """
    Cancel one of your appointments.
    """
    try:
        config = _load_config(ctx.obj)
        service = _build_service(config, ctx.obj.mock)
    except (FileNotFoundError, ValueError, ConfigError, PersistenceError) as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)

    result = service.cancel(appointment_id, requester_id=user, role=role)

    if not result.ok:
        if isinstance(result.error, PersistenceError) and not isinstance(result.error, NotFoundError):
            message = "Termin konnte nicht storniert werden."
        else:
            message = error_message(result.error, role, service.engine.policy)
        console.print(f"[bold red]Fehler:[/bold red] {message}")
        raise typer.Exit(1)

    console.print("[green]✓ Termin erfolgreich storniert![/green]")


@app.command()
def set_key(ctx: typer.Context):
    """
    Store the backend API key in the system keyring.
    """
    try:
        config = _load_config(ctx.obj)
        if config.backend is None:
            raise ConfigError("No backend configured.")

        api_key = typer.prompt(f"API-Key für {config.backend.url}", hide_input=True)
        CredentialStore().set_api_key(config.backend.url, api_key)

    except (FileNotFoundError, ValueError, ConfigError) as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)

    console.print("\n[green]✓ API-Key gespeichert.[/green]\n")


@app.command()
def clear_key(ctx: typer.Context):
    """
    Remove the stored backend API key.
    """
    try:
        config = _load_config(ctx.obj)
        if config.backend is None:
            raise ConfigError("No backend configured.")

        removed = CredentialStore().delete_api_key(config.backend.url)

    except (FileNotFoundError, ValueError, ConfigError) as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)

    if removed:
        console.print("\n[green]✓ API-Key gelöscht.[/green]\n")
    else:
        console.print("\n[yellow]Kein API-Key gespeichert.[/yellow]\n")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]tutorbooking[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
