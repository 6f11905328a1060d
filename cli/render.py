from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_check(payload: Dict[str, Any]) -> None:
    result = payload.get("result") or {}
    record = result.get("record") or {}
    echo_heading("Ticket Check")
    echo_key_values(
        [
            ("busNo", record.get("busNo")),
            ("routeNo", record.get("routeNo")),
            ("nonTicketHolders", record.get("nonTicketHolders")),
            ("fineCollected", record.get("fineCollected")),
            ("checkDate", record.get("checkDate")),
            ("created", result.get("upserted")),
        ]
    )


def render_attendance(payload: Dict[str, Any]) -> None:
    result = payload.get("result") or {}
    record = result.get("record") or {}
    echo_heading("Attendance")
    echo_key_values(
        [
            ("id", result.get("insertedId")),
            ("busNo", record.get("busNo")),
            ("conductorName", record.get("conductorName")),
            ("timestamp", record.get("timestamp")),
        ]
    )


def render_checks(records: List[Dict[str, Any]]) -> None:
    echo_heading("Ticket Checks")
    if not records:
        typer.echo("No checks recorded.")
        return
    for record in records:
        typer.echo(
            f"  - {record.get('checkDate')} bus {record.get('busNo')} "
            f"route {record.get('routeNo')}: {record.get('nonTicketHolders')} without ticket, "
            f"fine {record.get('fineCollected')}"
        )


def render_health(payload: Dict[str, Any]) -> None:
    echo_heading("Service Health")
    echo_key_values(sorted(payload.items()))
