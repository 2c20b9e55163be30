from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from .versions import VCardVersion

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    default_version: VCardVersion = VCardVersion.V4_0
    max_embedded_depth: int = 10
    line_length: int = 75
    add_prodid: bool = False
    pretty_json: bool = False
    xml_indent: bool = True
    caret_encoding: bool = True
    default_region: str = "GB"


DEFAULT_CONF = """# vcard-scribe configuration (TOML)
default_version = "4.0"
max_embedded_depth = 10
line_length = 75
add_prodid = false
pretty_json = false
xml_indent = true
caret_encoding = true
default_region = "GB"
"""


def _coerce(name: str, raw: Any, default: Any) -> Any:
    if name == "default_version":
        version = VCardVersion.find(str(raw))
        if version is None:
            raise ValueError(f"unknown vCard version {raw!r}")
        return version
    if isinstance(default, bool):
        if not isinstance(raw, bool):
            raise ValueError(f"{name} must be true or false")
        return raw
    if isinstance(default, int):
        value = int(raw)
        if value < 1:
            raise ValueError(f"{name} must be positive")
        return value
    return str(raw)


def settings_from_dict(data: dict[str, Any]) -> Settings:
    """Build settings from parsed TOML. Unknown keys are ignored."""
    settings = Settings()
    for f in fields(Settings):
        if f.name not in data:
            continue
        setattr(settings, f.name, _coerce(f.name, data[f.name], getattr(settings, f.name)))
    return settings


def load_settings(path: Path | None = None) -> Settings:
    """Read settings from a TOML file.

    A missing path gives the defaults. A malformed file is logged and the
    defaults are used instead.
    """
    if path is None or not path.exists():
        return Settings()
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
        return settings_from_dict(data)
    except (tomllib.TOMLDecodeError, ValueError, TypeError) as exc:
        logger.warning("%s: ignoring malformed config (%s)", path, exc)
        return Settings()


def write_default_config(conf_path: Path) -> bool:
    """Create ``conf_path`` with the default settings unless it exists.

    Returns True when a file was written.
    """
    conf_path = Path(conf_path)
    if conf_path.exists():
        return False
    conf_path.parent.mkdir(parents=True, exist_ok=True)
    conf_path.write_text(DEFAULT_CONF, encoding="utf-8")
    return True
