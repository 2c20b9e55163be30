from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Any

from rich.columns import Columns
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .errors import ValidationWarnings, VCardWarning
from .model import VCard

console = Console()

# ── Palette ────────────────────────────────────────────────────────────────────
_ACCENT  = "#4d9fff"
_GREEN   = "#3ecf8e"
_AMBER   = "#f0a500"
_RED     = "#f05c5c"
_TEXT    = "#c9d1e0"
_MID     = "#8896af"
_DIM     = "#546075"
_BORDER  = "#2a3347"


def _stat_panel(value: str, label: str, colour: str) -> Panel:
    body = Text()
    body.append(f"{value}\n", style=f"bold {colour}")
    body.append(label, style=f"dim {_DIM}")
    return Panel(body, border_style=_BORDER, padding=(0, 2), expand=True)


def _label(vcard: VCard) -> str:
    return vcard.formatted_name or "Unnamed"


def describe_value(value: Any, limit: int = 60) -> str:
    """Short one-line rendering of a property value for tables."""
    text = repr(value)
    return text if len(text) <= limit else text[: limit - 1] + "…"


# ── Conversion summary ─────────────────────────────────────────────────────────

def print_summary(
    *,
    vcards: list[VCard],
    warnings: list[VCardWarning],
    out_path: Path | None,
    target: str,
) -> None:
    property_count = sum(len(v) for v in vcards)

    console.print()
    console.print(Text("  CONVERSION SUMMARY", style=f"dim {_DIM}"))
    console.print()
    console.print(Columns([
        _stat_panel(str(len(vcards)), "vCards", _ACCENT),
        _stat_panel(str(property_count), "properties", _TEXT),
        _stat_panel(str(len(warnings)), "warnings", _AMBER if warnings else _GREEN),
    ], equal=True, expand=True))
    console.print()

    if out_path is not None:
        body = Text()
        body.append(f"✓  Written as {target}\n", style=f"bold {_GREEN}")
        body.append(str(out_path), style=f"dim {_MID}")
        console.print(Panel(body, border_style=_GREEN, padding=(0, 2)))


def print_warnings(warnings: list[VCardWarning], title: str = "WARNINGS", out: Console | None = None) -> None:
    if not warnings:
        return
    out = out or console
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Line", style=_DIM, justify="right")
    table.add_column("Property", style=_ACCENT)
    table.add_column("Message", style=_TEXT)
    for w in warnings:
        table.add_row(
            str(w.line_number) if w.line_number is not None else "",
            w.property_name or "",
            Text(w.message),
        )
    out.print(Panel(
        table,
        title=Text(f"{title}  {len(warnings)}", style=f"dim {_AMBER}"),
        title_align="left",
        border_style=_BORDER,
    ))


# ── Validation ─────────────────────────────────────────────────────────────────

def print_validation(vcard: VCard, result: ValidationWarnings) -> None:
    header = Text()
    header.append(f"  {_label(vcard)}", style=f"bold {_TEXT}")
    if result.is_empty():
        header.append("  ✓ valid", style=f"bold {_GREEN}")
        console.print(header)
        return
    header.append(f"  {len(result)} problem(s)", style=f"bold {_RED}")
    console.print(header)
    for prop, message in result:
        row = Text()
        row.append(f"    · {prop or '*':<12}", style=_ACCENT)
        row.append(message, style=f"dim {_MID}")
        console.print(row)


# ── Inspect ────────────────────────────────────────────────────────────────────

def print_inspect(vcard: VCard) -> None:
    counts = Counter(p.name for p in vcard.properties)
    title = Text()
    title.append(_label(vcard), style=f"bold {_TEXT}")
    title.append(f"  vCard {vcard.version}", style=f"dim {_MID}")

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Property", style=_ACCENT)
    table.add_column("Parameters", style=_MID)
    table.add_column("Value", style=_TEXT)
    for prop in vcard.properties:
        name = f"{prop.group}.{prop.name}" if prop.group else prop.name
        params = "; ".join(f"{k}={','.join(v)}" for k, v in prop.parameters.as_multimap().items())
        table.add_row(name, Text(params), Text(describe_value(prop.value)))
    for label in vcard.orphaned_labels:
        table.add_row("LABEL", "orphaned", Text(describe_value(label.value)), style=_AMBER)

    console.print(Panel(table, title=title, title_align="left", border_style=_BORDER))
    repeated = {name: n for name, n in counts.items() if n > 1}
    if repeated:
        parts = ", ".join(f"{name} ×{n}" for name, n in sorted(repeated.items()))
        console.print(Text(f"  repeated: {parts}", style=f"dim {_DIM}"))
