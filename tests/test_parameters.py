"""Tests for the parameter multi-map and its typed accessors."""
from __future__ import annotations

from vcard_scribe.parameters import Pid, VCardParameters
from vcard_scribe.versions import URI, VCardVersion


def _params(*items: tuple[str, str]) -> VCardParameters:
    return VCardParameters(items)


# ── Multi-map behaviour ────────────────────────────────────────────────────────

def test_names_are_case_insensitive():
    params = _params(("type", "home"))
    assert params.get("TYPE") == "home"
    assert "Type" in params
    assert params.names() == ["TYPE"]


def test_multiple_values_keep_order():
    params = _params(("TYPE", "work"), ("LANGUAGE", "en"), ("TYPE", "voice"))
    assert params.get_all("type") == ["work", "voice"]
    assert params.as_multimap() == {"TYPE": ["work", "voice"], "LANGUAGE": ["en"]}


def test_replace_and_remove_all():
    params = _params(("TYPE", "work"), ("TYPE", "voice"))
    assert params.replace("TYPE", "cell") == ["work", "voice"]
    assert params.types == ["cell"]
    assert params.remove_all("TYPE") == ["cell"]
    assert len(params) == 0


def test_copy_is_independent():
    original = _params(("TYPE", "home"))
    dup = original.copy()
    dup.add_type("pref")
    assert original.types == ["home"]
    assert dup == _params(("TYPE", "home"), ("TYPE", "pref"))


def test_equality_ignores_name_case():
    assert _params(("type", "a")) == _params(("TYPE", "a"))
    assert _params(("TYPE", "a")) != _params(("TYPE", "b"))


# ── Typed accessors ────────────────────────────────────────────────────────────

def test_pref_round_trip():
    params = VCardParameters()
    params.pref = 3
    assert params.get("PREF") == "3"
    assert params.pref == 3
    params.pref = None
    assert "PREF" not in params


def test_pref_not_an_integer_reads_as_none():
    assert _params(("PREF", "high")).pref is None


def test_remove_type_is_case_insensitive():
    params = _params(("TYPE", "PREF"), ("TYPE", "home"))
    assert params.remove_type("pref") is True
    assert params.types == ["home"]
    assert params.remove_type("pref") is False


def test_pids():
    params = VCardParameters()
    params.add_pid(1, 2)
    params.add_pid(3)
    assert params.pids == [Pid(1, 2), Pid(3)]
    assert params.get_all("PID") == ["1.2", "3"]

    params.put("TYPE", "home")
    assert params.remove_pids() == ["1.2", "3"]
    assert params.pids == []
    assert params.types == ["home"]


def test_geo_parameter():
    params = VCardParameters()
    params.geo = (12.5, -30.25)
    assert params.get("GEO") == "geo:12.5,-30.25"
    assert params.geo == (12.5, -30.25)


def test_value_parameter_uses_data_type_name():
    params = VCardParameters()
    params.value = URI
    assert params.get("VALUE") == "uri"
    assert params.value is URI
    params.value = None
    assert "VALUE" not in params


def test_string_accessors():
    params = VCardParameters()
    params.media_type = "image/png"
    params.sort_as = "Doe,John"
    assert params.get("MEDIATYPE") == "image/png"
    assert params.get("SORT-AS") == "Doe,John"


# ── Validation ─────────────────────────────────────────────────────────────────

def test_validate_version_specific_parameters():
    params = _params(("PREF", "1"), ("ALTID", "1"))
    problems = params.validate(VCardVersion.V3_0)
    assert any("PREF" in p for p in problems)
    assert any("ALTID" in p for p in problems)
    assert params.validate(VCardVersion.V4_0) == []


def test_validate_pref_range():
    problems = _params(("PREF", "101")).validate(VCardVersion.V4_0)
    assert problems == ["PREF parameter value must be between 1 and 100: 101"]


def test_validate_malformed_pid_and_encoding():
    assert _params(("PID", "x.1")).validate(VCardVersion.V4_0)
    problems = _params(("ENCODING", "base64")).validate(VCardVersion.V3_0)
    assert problems == ["ENCODING=base64 is not valid in vCard 3.0."]
    assert _params(("ENCODING", "b")).validate(VCardVersion.V3_0) == []


def test_validate_charset_only_in_21():
    assert _params(("CHARSET", "UTF-8")).validate(VCardVersion.V2_1) == []
    assert _params(("CHARSET", "UTF-8")).validate(VCardVersion.V4_0)
