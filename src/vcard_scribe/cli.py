from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from .config import Settings, load_settings, write_default_config
from .errors import VCardParseError, VCardWarning
from .exporter import write_vcards
from .formatters import telephones_to_uris
from .hcard import read_hcard
from .io import parse_vcards
from .jcard import read_jcard, write_jcard
from .model import VCard
from .report import print_inspect, print_summary, print_validation, print_warnings
from .validation import validate
from .versions import VCardVersion
from .xcard import read_xcard, write_xcard

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="vcard-scribe: read, validate and convert vCard, xCard, jCard and hCard data.",
)
console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


class OutputFormat(str, Enum):
    vcard = "vcard"
    xcard = "xcard"
    jcard = "jcard"


# ── Shared helpers ─────────────────────────────────────────────────────────────

def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _parse_version(text: str | None, settings: Settings) -> VCardVersion:
    if text is None:
        return settings.default_version
    version = VCardVersion.find(text)
    if version is None:
        err_console.print(f"[bold red]Unknown vCard version {text!r} (use 2.1, 3.0 or 4.0).[/bold red]")
        raise typer.Exit(code=2)
    return version


def _read_input(path: Path, settings: Settings) -> tuple[list[VCard], list[VCardWarning]]:
    """Read ``path``, choosing the format from its extension."""
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
        suffix = path.suffix.lower()
        if suffix == ".xml":
            return read_xcard(text)
        if suffix == ".json":
            return read_jcard(text)
        if suffix in (".html", ".htm"):
            return read_hcard(text, settings=settings)
        return parse_vcards(text, settings=settings)
    except (VCardParseError, OSError) as exc:
        err_console.print(f"[bold red]Could not read {path}: {exc}[/bold red]")
        raise typer.Exit(code=2) from exc


# ── `convert` command ──────────────────────────────────────────────────────────

@app.command()
def convert(
    input: Path = typer.Argument(..., help="Input file (.vcf, .xml, .json, .html)"),
    to: OutputFormat = typer.Option(OutputFormat.vcard, "--to", "-t", help="Output format"),
    version: str | None = typer.Option(None, "--version", "-V", help="Target vCard version for --to vcard"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write here instead of stdout"),
    tel_uri: bool = typer.Option(False, "--tel-uri", help="Rewrite valid phone numbers as tel: URIs"),
    region: str | None = typer.Option(None, "--region", "-r", help="Phone region ISO-2 code (e.g. GB, US)"),
    prodid: bool = typer.Option(False, "--prodid", help="Add a PRODID property"),
    pretty: bool = typer.Option(False, "--pretty", help="Indent jCard output"),
    config: Path | None = typer.Option(None, "--config", "-c", help="TOML settings file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
) -> None:
    """Convert contacts between vCard versions and the xCard / jCard formats."""
    _setup_logging(verbose)
    settings = load_settings(config)
    if prodid:
        settings.add_prodid = True
    target_version = _parse_version(version, settings)

    vcards, read_warnings = _read_input(input, settings)
    if not vcards:
        err_console.print(f"[bold red]No vCards found in {input}.[/bold red]")
        raise typer.Exit(code=2)

    if tel_uri:
        converted = sum(telephones_to_uris(v, region or settings.default_region) for v in vcards)
        logger.info("converted %d phone number(s) to tel: URIs", converted)

    if to is OutputFormat.xcard:
        text, write_warnings = write_xcard(vcards, indent=settings.xml_indent)
        target = "xCard"
    elif to is OutputFormat.jcard:
        text, write_warnings = write_jcard(vcards, pretty=pretty or settings.pretty_json)
        target = "jCard"
    else:
        text, write_warnings = write_vcards(vcards, target_version, settings=settings)
        target = f"vCard {target_version}"

    if output is None:
        typer.echo(text, nl=not text.endswith("\n"))
        print_warnings(read_warnings, "READ WARNINGS", out=err_console)
        print_warnings(write_warnings, "WRITE WARNINGS", out=err_console)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8", newline="")
    print_warnings(read_warnings, "READ WARNINGS")
    print_warnings(write_warnings, "WRITE WARNINGS")
    print_summary(vcards=vcards, warnings=read_warnings + write_warnings, out_path=output, target=target)


# ── `validate` command ─────────────────────────────────────────────────────────

@app.command("validate")
def validate_command(
    input: Path = typer.Argument(..., help="Input file (.vcf, .xml, .json, .html)"),
    version: str | None = typer.Option(None, "--version", "-V", help="Validate against this version"),
    config: Path | None = typer.Option(None, "--config", "-c", help="TOML settings file"),
) -> None:
    """Check each vCard against the rules of a vCard version.

    Exits with code 1 when any problem is found.
    """
    settings = load_settings(config)
    vcards, read_warnings = _read_input(input, settings)
    print_warnings(read_warnings, "READ WARNINGS")

    problems = 0
    for vcard in vcards:
        target = _parse_version(version, settings) if version else vcard.version
        result = validate(vcard, target, max_depth=settings.max_embedded_depth)
        print_validation(vcard, result)
        problems += len(result)

    if problems:
        raise typer.Exit(code=1)


# ── `inspect` command ──────────────────────────────────────────────────────────

@app.command()
def inspect(
    input: Path = typer.Argument(..., help="Input file (.vcf, .xml, .json, .html)"),
    config: Path | None = typer.Option(None, "--config", "-c", help="TOML settings file"),
) -> None:
    """Show the properties of every vCard in a file."""
    settings = load_settings(config)
    vcards, read_warnings = _read_input(input, settings)
    for vcard in vcards:
        print_inspect(vcard)
    print_warnings(read_warnings, "READ WARNINGS")


# ── `init-config` command ──────────────────────────────────────────────────────

@app.command("init-config")
def init_config(
    path: Path = typer.Argument(Path("vcard-scribe.toml"), help="Where to write the settings file"),
) -> None:
    """Write a settings file with the default values."""
    if write_default_config(path):
        console.print(f"[bold green]✓ Wrote {path}[/bold green]")
    else:
        console.print(f"[dim]{path} already exists; left unchanged.[/dim]")


if __name__ == "__main__":
    app()
