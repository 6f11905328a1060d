from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_attendance, render_check, render_checks, render_health


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for recording inspections against the transit live feed service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:3000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("check")
def check_command(
    ctx: typer.Context,
    bus_no: str = typer.Argument(..., help="Vehicle identifier as shown on the map."),
    route_no: str = typer.Argument(..., help="Route the bus was running."),
    non_ticket_holders: int = typer.Option(
        0, "--non-ticket-holders", "-n", min=0, help="Passengers found without a ticket."
    ),
    fine_collected: float = typer.Option(
        0.0, "--fine-collected", "-f", min=0.0, help="Total fine collected."
    ),
) -> None:
    """Record today's ticket check for a bus."""
    state = _get_state(ctx)
    payload = state.client.record_check(bus_no, route_no, non_ticket_holders, fine_collected)
    typer.secho("Check recorded.", fg=typer.colors.GREEN)
    render_check(payload)


@app.command("attendance")
def attendance_command(
    ctx: typer.Context,
    bus_no: str = typer.Argument(..., help="Vehicle identifier."),
    conductor_name: str = typer.Argument(..., help="Conductor on duty."),
) -> None:
    """Record a conductor's attendance on a bus."""
    state = _get_state(ctx)
    payload = state.client.record_attendance(bus_no, conductor_name)
    typer.secho("Attendance recorded.", fg=typer.colors.GREEN)
    render_attendance(payload)


@app.command("checks")
def checks_command(ctx: typer.Context) -> None:
    """List stored ticket checks."""
    state = _get_state(ctx)
    render_checks(state.client.list_checks())


@app.command("health")
def health_command(ctx: typer.Context) -> None:
    """Show poller, viewer and storage status."""
    state = _get_state(ctx)
    render_health(state.client.health())
