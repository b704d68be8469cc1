"""Tests for demon_lord.parsing — tolerant JSON extraction and effect whitelisting."""

import pytest

from demon_lord.parsing import ParseError, ParseOk, as_int, effect_from_changes, parse_json_object


# ── parse_json_object ────────────────────────────────────────


def test_plain_object():
    assert parse_json_object('{"a": 1}') == ParseOk(data={"a": 1})


def test_fenced_object():
    result = parse_json_object('```json\n{"a": 1}\n```')
    assert isinstance(result, ParseOk)
    assert result.data == {"a": 1}


def test_object_inside_prose():
    result = parse_json_object('Sure! {"response": "はい {笑}"} Hope that helps.')
    assert isinstance(result, ParseOk)
    assert result.data == {"response": "はい {笑}"}


def test_nested_object():
    result = parse_json_object('reply: {"a": {"b": [1, 2]}, "c": "}"} trailing')
    assert result.data == {"a": {"b": [1, 2]}, "c": "}"}


@pytest.mark.parametrize("text,reason", [
    ("", "empty"),
    ("   ", "empty"),
    ("no braces here", "no JSON object"),
    ("[1, 2, 3]", "expected a JSON object"),
    ('{"a": 1,}', "invalid JSON"),
])
def test_failures_are_tagged(text, reason):
    result = parse_json_object(text)
    assert isinstance(result, ParseError)
    assert reason in result.reason


def test_error_keeps_raw_text():
    result = parse_json_object("おはよう")
    assert result.raw == "おはよう"


def test_non_string_input():
    assert isinstance(parse_json_object(None), ParseError)


# ── effect_from_changes ──────────────────────────────────────


def test_effect_from_known_stats():
    effect = effect_from_changes({"reputation": 3, "wealth": -20.0, "flags": {"met_sage": True}})
    assert effect.reputation_delta == 3
    assert effect.wealth_delta == -20
    assert effect.flags == {"met_sage": True}
    assert effect.model_fields_set == {"reputation_delta", "wealth_delta", "flags"}


def test_effect_drops_unknown_and_bad_values():
    effect = effect_from_changes({
        "mana": 10,
        "health": "lots",
        "strength": True,
        "knowledge": 4,
        "flags": {"ok": True, "bad": "yes"},
    })
    assert effect.knowledge_delta == 4
    assert effect.health_delta == 0
    assert effect.strength_delta == 0
    assert effect.flags == {"ok": True}


@pytest.mark.parametrize("changes", [None, "x", [], {}, {"mana": 1}, {"flags": {"a": "b"}}])
def test_nothing_usable_returns_none(changes):
    assert effect_from_changes(changes) is None


def test_non_finite_numbers_dropped():
    parsed = parse_json_object('{"stateChanges": {"reputation": NaN, "wealth": -Infinity, "knowledge": 2}}')
    assert isinstance(parsed, ParseOk)
    effect = effect_from_changes(parsed.data["stateChanges"])
    assert effect.model_fields_set == {"knowledge_delta"}
    assert effect.knowledge_delta == 2


@pytest.mark.parametrize("value,expected", [
    (3, 3), (2.9, 2), (-4.0, -4), (True, None), ("5", None),
    (float("nan"), None), (float("inf"), None), (float("-inf"), None),
])
def test_as_int(value, expected):
    assert as_int(value) == expected
