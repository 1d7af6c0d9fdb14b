"""Output renderer: rich table formatter, JSON formatter, format dispatch."""

import dataclasses
import json
import sys
from io import StringIO

from rich.console import Console
from rich.table import Table
from rich.text import Text

from bpdash.metrics import (
    PLACEHOLDER,
    Tone,
    compute_delta,
    delay_tone,
    delta_tone,
    format_delta,
    format_height,
    format_milliseconds,
    format_number_string,
    format_seconds,
)
from bpdash.models import CardData, DashboardSnapshot

_TONE_STYLES: dict[Tone, str] = {
    "neutral": "",
    "success": "green",
    "warning": "yellow",
    "danger": "red",
}

_COLUMNS = ("Kind", "Title", "Height", "Delta", "Leader / Version", "Age", "Latency", "Error")


def render(
    snapshot: DashboardSnapshot,
    fmt: str,
    *,
    file: object | None = None,
    width: int | None = None,
) -> None:
    """Dispatch output to the appropriate formatter.

    Args:
        snapshot: Poll result to render.
        fmt: Output format — ``"table"`` or ``"json"``.
        file: Writable file object for output (default: ``sys.stdout``).
        width: Explicit console width (default: auto-detect).

    Raises:
        ValueError: If *fmt* is not ``"table"`` or ``"json"``.
    """
    if fmt == "table":
        render_table(snapshot, file=file, width=width)
    elif fmt == "json":
        render_json(snapshot, file=file)
    else:
        raise ValueError(f"Unknown output format: {fmt!r}")


# ---------------------------------------------------------------------------
# Table (rich) formatter
# ---------------------------------------------------------------------------


def render_table(
    snapshot: DashboardSnapshot,
    *,
    file: object | None = None,
    width: int | None = None,
) -> None:
    """Render *snapshot* as a ``rich`` table to *file*.

    Deltas are measured against ``snapshot.max_height`` and coloured by
    delta tone; ages are coloured by delay tone.
    """
    out = file or sys.stdout
    console = Console(file=out, highlight=False, width=width)

    table = Table(title=f"{snapshot.network} — {len(snapshot.cards)} nodes")
    for header in _COLUMNS:
        table.add_column(header)

    for card in snapshot.cards:
        table.add_row(*_card_row(card, snapshot.max_height))

    console.print(table)
    _print_summary(console, snapshot)


def _card_row(card: CardData, reference: int | float | None) -> list[str | Text]:
    delta = compute_delta(card.height, reference)
    age = card.last_applied_age_sec if card.kind == "bp" else card.block_age_sec
    return [
        card.kind,
        card.title,
        format_height(card.height),
        _styled(format_delta(delta), delta_tone(delta)),
        _fmt(card.leader or card.rpc_version or card.bp_build_version),
        _styled(format_seconds(age), delay_tone(age)),
        format_milliseconds(_latency(card)),
        Text(card.error, style="red") if card.error else PLACEHOLDER,
    ]


def _latency(card: CardData) -> float | None:
    """Per-kind latency figure: average RPC response, explorer call, BP delay."""
    if card.kind == "rpc":
        return card.rpc_average_response_ms
    if card.kind == "explorer":
        return card.explorer_response_ms
    return card.avg_production_delay_ms


def _print_summary(console: Console, snapshot: DashboardSnapshot) -> None:
    """Print a one-line summary beneath the table."""
    failed = sum(1 for card in snapshot.cards if card.error)
    console.print(
        f"  max height: {format_height(snapshot.max_height)}, "
        f"{failed} of {len(snapshot.cards)} with errors"
    )

    supply = snapshot.supply
    if supply.values:
        parts = [
            f"{symbol} {format_number_string(value, whole=True)}"
            for symbol, value in supply.values.items()
        ]
        console.print(f"  supply: {', '.join(parts)}")
    if supply.error:
        console.print(f"  supply: {supply.error}")


def _styled(value: str, tone: Tone) -> Text:
    return Text(value, style=_TONE_STYLES[tone])


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------


def render_json(snapshot: DashboardSnapshot, *, file: object | None = None) -> None:
    """Render *snapshot* as JSON to *file*.

    The output is ``dataclasses.asdict(snapshot)``: ``network``,
    ``default_network``, ``counts``, ``cards``, ``max_height`` and
    ``supply``.
    """
    out = file or sys.stdout
    json.dump(dataclasses.asdict(snapshot), out, indent=2, default=str)
    out.write("\n")  # type: ignore[union-attr]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fmt(value: object) -> str:
    """Format a field value for table display.

    ``None`` becomes ``"—"``, everything else is stringified.
    """
    if value is None:
        return PLACEHOLDER
    return str(value)


def render_to_string(snapshot: DashboardSnapshot, fmt: str, *, width: int = 200) -> str:
    """Render to a string instead of stdout — useful for testing.

    Args:
        snapshot: Poll result to render.
        fmt: Output format — ``"table"`` or ``"json"``.
        width: Console width for table rendering (default: 200).

    Returns:
        The rendered output as a string.
    """
    buf = StringIO()
    render(snapshot, fmt, file=buf, width=width)
    return buf.getvalue()
