"""Settings file handling."""
from __future__ import annotations

from pathlib import Path

import pytest

from vcard_scribe.config import DEFAULT_CONF, Settings, load_settings, settings_from_dict, write_default_config
from vcard_scribe.versions import VCardVersion


def test_defaults_without_file(tmp_path: Path):
    assert load_settings(None) == Settings()
    assert load_settings(tmp_path / "missing.toml") == Settings()


def test_loads_values(tmp_path: Path):
    conf = tmp_path / "vcard-scribe.toml"
    conf.write_text('default_version = "3.0"\nmax_embedded_depth = 3\nadd_prodid = true\n', encoding="utf-8")
    settings = load_settings(conf)
    assert settings.default_version is VCardVersion.V3_0
    assert settings.max_embedded_depth == 3
    assert settings.add_prodid is True
    assert settings.line_length == 75


def test_malformed_file_falls_back_to_defaults(tmp_path: Path, caplog):
    conf = tmp_path / "bad.toml"
    conf.write_text("this is = = not toml", encoding="utf-8")
    with caplog.at_level("WARNING"):
        assert load_settings(conf) == Settings()
    assert "malformed" in caplog.text


def test_bad_values_rejected():
    with pytest.raises(ValueError):
        settings_from_dict({"default_version": "5.0"})
    with pytest.raises(ValueError):
        settings_from_dict({"caret_encoding": "yes"})
    with pytest.raises(ValueError):
        settings_from_dict({"max_embedded_depth": 0})


def test_unknown_keys_ignored():
    assert settings_from_dict({"colour": "blue"}) == Settings()


def test_write_default_config(tmp_path: Path):
    conf = tmp_path / "sub" / "vcard-scribe.toml"
    assert write_default_config(conf) is True
    assert conf.read_text(encoding="utf-8") == DEFAULT_CONF
    assert write_default_config(conf) is False
    assert load_settings(conf) == Settings()
