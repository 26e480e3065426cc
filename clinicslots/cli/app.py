"""
Main CLI application using Typer.
"""

import asyncio
import logging
from datetime import date, time
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.in_memory_store import InMemoryRecordStore
from ..adapters.postgrest_store import PostgrestRecordStore
from ..config import AppConfig, get_default_config_path, get_default_mock_data_path
from ..domain.models import BookingRequest, at_wall_clock, parse_calendar_date, parse_clock_time
from ..services.availability import AvailabilityService, BookingPolicy

app = typer.Typer(
    name="clinicslots",
    help="Consultar horários disponíveis e agendar consultas",
    add_completion=False
)

console = Console()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path], verbose: bool) -> AppConfig:
    """
    Load the configuration file.

    An explicitly passed file must exist; the default location is optional.
    """
    if config_file is not None:
        config = AppConfig.load_from_yaml(config_file)
    else:
        default_path = get_default_config_path()
        config = AppConfig.load_from_yaml(default_path) if default_path.exists() else AppConfig()

    _configure_logging("DEBUG" if verbose else config.log_level)
    return config


def _build_store(config: AppConfig, mock: bool):
    if mock or not config.store.is_configured:
        if config.mock_data_path is not None:
            return InMemoryRecordStore.from_json_file(
                config.mock_data_path,
                persist=True,
                timezone=config.timezone,
                default_slot_duration_minutes=config.defaults.slot_duration_minutes,
            )
        return InMemoryRecordStore.from_json_file(
            get_default_mock_data_path(),
            timezone=config.timezone,
            default_slot_duration_minutes=config.defaults.slot_duration_minutes,
        )

    return PostgrestRecordStore(
        config.store.url,
        config.store.api_key,
        clinic_id=config.store.clinic_id,
        timezone=config.timezone,
        default_slot_duration_minutes=config.defaults.slot_duration_minutes,
        timeout_seconds=config.store.timeout_seconds,
    )


def _build_service(config: AppConfig, store) -> AvailabilityService:
    return AvailabilityService(
        store,
        policy=BookingPolicy(
            max_advance_days=config.defaults.max_advance_days,
            allow_past_dates=config.defaults.allow_past_dates,
        ),
        clock=lambda: pendulum.now(config.timezone),
    )


def _parse_date_option(value: Optional[str], tz: str):
    if value is None:
        now = pendulum.now(tz)
        return date(now.year, now.month, now.day)
    try:
        return parse_calendar_date(value)
    except ValueError as e:
        console.print(f"[red]Erro ao interpretar a data: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def slots(
    professional_id: Annotated[str, typer.Argument(help="ID do profissional")],
    day: Annotated[Optional[str], typer.Option("--date", help="Data (YYYY-MM-DD). Padrão: hoje")] = None,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    mock: Annotated[bool, typer.Option("--mock", help="Usar dados de teste em vez do banco.")] = False,
    show_occupied: Annotated[bool, typer.Option("--all/--free", help="Mostrar também horários ocupados.")] = True,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log detalhado.")] = False,
):
    """
    List the slots of a professional for one day.

    Examples:

        clinicslots slots prof-ana --date 2026-10-26 --mock
        clinicslots slots prof-bruno --free
    """
    try:
        config = _load_config(config_file, verbose)
        target_date = _parse_date_option(day, config.timezone)

        if mock:
            console.print("[yellow]⚠  MODO DE TESTE: usando dados fictícios[/yellow]\n")

        service = _build_service(config, _build_store(config, mock))
        result = asyncio.run(service.get_day_slots(professional_id, target_date))

        if not result.ok:
            console.print(f"[bold red]Erro:[/bold red] {result.error.message}")
            if getattr(result.error, "detail", None):
                console.print(f"[dim]{result.error.detail}[/dim]")
            raise typer.Exit(1)

        day_slots = result.value
        if not show_occupied:
            day_slots = [slot for slot in day_slots if slot.available]

        title = f"Horários de {professional_id} em {target_date:%d/%m/%Y}"

        if not day_slots:
            console.print(
                f"[yellow]⚠ Nenhum horário disponível.[/yellow] ({title})\n"
                "O profissional não atende neste dia ou a agenda está cheia."
            )
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("Início", style="bold")
        table.add_column("Fim")
        table.add_column("Situação")
        table.add_column("Agendamento", style="dim")

        for slot in day_slots:
            state = "[red]ocupado[/red]" if slot.occupied else "[green]livre[/green]"
            table.add_row(
                f"{slot.start_time:%H:%M}",
                f"{slot.end_time:%H:%M}",
                state,
                slot.booking.booking_id if slot.booking else "",
            )

        free = sum(1 for slot in day_slots if slot.available)
        console.print()
        console.print(table)
        console.print(f"\n[bold green]✓ {free} horário(s) livre(s)[/bold green]\n")

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Erro:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def book(
    professional_id: Annotated[str, typer.Argument(help="ID do profissional")],
    day: Annotated[str, typer.Option("--date", help="Data (YYYY-MM-DD)")],
    start: Annotated[str, typer.Option("--start", help="Início (HH:MM)")],
    end: Annotated[Optional[str], typer.Option("--end", help="Fim (HH:MM)")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Duração em minutos (alternativa a --end)")] = None,
    patient: Annotated[Optional[str], typer.Option("--patient", help="ID do paciente")] = None,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file")] = None,
    mock: Annotated[bool, typer.Option("--mock", help="Usar dados de teste em vez do banco.")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log detalhado.")] = False,
):
    """
    Book an appointment after re-validating the slot.
    """
    if end is not None and duration is not None:
        console.print("[red]Erro: use --end ou --duration, não ambos.[/red]")
        raise typer.Exit(1)

    try:
        config = _load_config(config_file, verbose)
        target_date = parse_calendar_date(day)
        start_time = parse_clock_time(start)

        if end is not None:
            end_time = parse_clock_time(end)
        else:
            minutes = duration or config.defaults.slot_duration_minutes
            slot_end = at_wall_clock(target_date, start_time).add(minutes=minutes)
            end_time = time(slot_end.hour, slot_end.minute)

        request = BookingRequest(
            professional_id=professional_id,
            date=target_date,
            start_time=start_time,
            end_time=end_time,
            patient_id=patient,
        )

        service = _build_service(config, _build_store(config, mock))
        result = asyncio.run(service.book_slot(request))

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Erro:[/bold red] {e}")
        raise typer.Exit(1)

    if not result.ok:
        console.print(Panel.fit(
            f"[bold red]✗ {result.error.message}[/bold red]\n\n"
            f"[bold]Motivo:[/bold] {result.error.kind}",
            title="Agendamento recusado"
        ))
        raise typer.Exit(1)

    booking = result.value
    console.print(Panel.fit(
        f"[bold green]✓ Consulta agendada![/bold green]\n\n"
        f"[bold]Profissional:[/bold] {booking.professional_id}\n"
        f"[bold]Data:[/bold] {booking.date:%d/%m/%Y}\n"
        f"[bold]Horário:[/bold] {booking.start_time:%H:%M} – {booking.end_time:%H:%M}\n"
        f"[bold]Código:[/bold] {booking.id}",
        title="✓ Agendamento"
    ))


@app.command()
def professionals(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Path to config file"
    )
):
    """
    List the professionals in the mock data.
    """
    try:
        config = _load_config(config_file, verbose=False)
        store = _build_store(config, mock=True)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Erro:[/bold red] {e}")
        raise typer.Exit(1)

    if not store.professionals:
        console.print("[yellow]Nenhum profissional cadastrado.[/yellow]")
        return

    table = Table(
        title="Profissionais",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("ID", style="bold yellow")
    table.add_column("Nome")
    table.add_column("Especialidade", style="dim")
    table.add_column("Ativo")

    for row in store.professionals:
        table.add_row(
            str(row.get("id")),
            row.get("name", ""),
            row.get("specialty", ""),
            "sim" if row.get("is_active", True) else "não",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]clinicslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
