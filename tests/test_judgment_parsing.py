"""Tests for parsing and normalizing the moderation model's reply."""

import pytest

from serversense.ai.judgment_parsing import (
    DEFAULT_REASON,
    JUDGMENT_SCHEMA,
    ParsedJudgment,
    ParseFailure,
    extract_first_json_object,
    judgment_schema_errors,
    normalize_judgment,
    parse_judgment_reply,
)
from serversense.datatypes.moderation_datatypes import ActionType, JudgmentSource, ViolationKind


def test_extract_plain_object():
    assert extract_first_json_object('{"safe": true}') == {"safe": True}


def test_extract_from_code_fence():
    reply = '```json\n{"safe": false, "severity": 6}\n```'

    assert extract_first_json_object(reply) == {"safe": False, "severity": 6}


def test_extract_object_followed_by_braced_prose():
    reply = 'Here you go: {"safe": true} and also {not json}'

    assert extract_first_json_object(reply) == {"safe": True}


def test_extract_returns_none_without_object():
    assert extract_first_json_object("I cannot help with that") is None
    assert extract_first_json_object("[1, 2, 3]") is None


@pytest.mark.parametrize("reply", [None, "", "   "])
def test_parse_empty_reply_is_failure(reply):
    result = parse_judgment_reply(reply)

    assert isinstance(result, ParseFailure)
    assert result.reason == "empty reply"


def test_parse_prose_reply_is_failure():
    result = parse_judgment_reply("The message looks fine to me.")

    assert isinstance(result, ParseFailure)
    assert result.raw == "The message looks fine to me."


def test_parse_json_reply_is_parsed():
    result = parse_judgment_reply('{"safe": false}')

    assert isinstance(result, ParsedJudgment)
    assert result.payload == {"safe": False}


def test_normalize_full_payload():
    judgment = normalize_judgment(
        {
            "safe": False,
            "violations": ["toxicity", "SPAM"],
            "severity": 6,
            "reason": "Insulting another member",
            "action": "DELETE",
        }
    )

    assert judgment.safe is False
    assert judgment.violations == frozenset({ViolationKind.TOXICITY, ViolationKind.SPAM})
    assert judgment.severity == 6
    assert judgment.action is ActionType.DELETE
    assert judgment.reason == "Insulting another member"
    assert judgment.source is JudgmentSource.AI


def test_normalize_missing_safe_defaults_to_safe():
    judgment = normalize_judgment({"violations": ["TOXICITY"], "severity": 5})

    assert judgment.safe is True
    assert judgment.violations == frozenset()
    assert judgment.severity == 0


def test_normalize_drops_unknown_violations_and_actions():
    judgment = normalize_judgment(
        {"safe": False, "violations": ["TOXICITY", "MEMES"], "severity": 3, "action": "shame"}
    )

    assert judgment.violations == frozenset({ViolationKind.TOXICITY})
    assert judgment.action is ActionType.NONE


@pytest.mark.parametrize(
    "raw, expected",
    [(15, 10), (-3, 0), ("7", 7), (4.9, 4), ("high", 0), (None, 0), (True, 0)],
)
def test_normalize_clamps_severity(raw, expected):
    judgment = normalize_judgment({"safe": False, "violations": ["SPAM"], "severity": raw})

    assert judgment.severity == expected


def test_normalize_unsafe_without_violations_or_severity_is_clean():
    judgment = normalize_judgment({"safe": False, "violations": [], "severity": 0, "reason": "meh"})

    assert judgment.safe is True
    assert judgment.reason == "meh"


def test_normalize_defaults_reason():
    judgment = normalize_judgment({"safe": False, "violations": ["SCAM"], "severity": 8})

    assert judgment.reason == DEFAULT_REASON


def test_normalize_non_mapping_is_clean():
    judgment = normalize_judgment(["not", "a", "dict"])  # type: ignore[arg-type]

    assert judgment.safe is True


def test_normalize_string_booleans():
    judgment = normalize_judgment({"safe": "false", "violations": ["NSFW"], "severity": 5})

    assert judgment.safe is False
    assert judgment.violations == frozenset({ViolationKind.NSFW})


@pytest.mark.parametrize("violations", ["NSFW", {"kind": "NSFW"}, 3, None])
def test_normalize_non_list_violations_count_as_none(violations):
    judgment = normalize_judgment({"safe": False, "violations": violations, "severity": 5, "action": "warn"})

    assert judgment.safe is False
    assert judgment.violations == frozenset()
    assert judgment.severity == 5


def test_schema_accepts_conforming_reply():
    result = parse_judgment_reply(
        '{"safe": false, "violations": ["SPAM"], "severity": 4, "reason": "Ad", "action": "delete"}'
    )

    assert isinstance(result, ParsedJudgment)
    assert result.conforms
    assert result.schema_errors == ()


def test_schema_flags_departures_but_keeps_payload():
    result = parse_judgment_reply('{"safe": "false", "violations": "NSFW", "severity": 11}')

    assert isinstance(result, ParsedJudgment)
    assert not result.conforms
    assert result.payload == {"safe": "false", "violations": "NSFW", "severity": 11}
    assert normalize_judgment(result.payload).severity == 10


def test_schema_enumerates_every_kind_and_action():
    properties = JUDGMENT_SCHEMA["properties"]

    assert set(properties["violations"]["items"]["enum"]) == {kind.value for kind in ViolationKind}
    assert set(properties["action"]["enum"]) == {action.value for action in ActionType}
    assert set(JUDGMENT_SCHEMA["required"]) == set(properties)


def test_schema_errors_name_the_offending_fields():
    errors = judgment_schema_errors(
        {"safe": True, "violations": ["MEMES"], "severity": 0, "reason": "ok", "action": "shame"}
    )

    assert len(errors) == 2
    assert any("MEMES" in error for error in errors)
    assert any("shame" in error for error in errors)
