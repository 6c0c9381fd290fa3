"""Parsing and normalization of the moderation model's JSON verdict.

``JUDGMENT_SCHEMA`` is sent to the model as the structured output format and
checked with ``Draft7Validator`` on the way back. Endpoints that ignore the
format still work: a payload that fails the schema is logged and handed to
:func:`normalize_judgment`, which coerces anything into a valid judgment.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple, Union

from jsonschema import Draft7Validator

from serversense.datatypes.moderation_datatypes import ActionType, Judgment, JudgmentSource, ViolationKind
from serversense.util.logger import get_logger

logger = get_logger("judgment_parsing")

DEFAULT_REASON = "No reason provided"
MAX_SEVERITY = 10

JUDGMENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "safe": {"type": "boolean"},
        "violations": {
            "type": "array",
            "items": {"type": "string", "enum": [kind.value for kind in ViolationKind]},
        },
        "severity": {"type": "integer", "minimum": 0, "maximum": MAX_SEVERITY},
        "reason": {"type": "string"},
        "action": {"type": "string", "enum": [action.value for action in ActionType]},
    },
    "required": ["safe", "violations", "severity", "reason", "action"],
    "additionalProperties": False,
}

_judgment_validator = Draft7Validator(JUDGMENT_SCHEMA)

# Greedy: spans from the first "{" to the last "}" so fenced replies still match
_JSON_SPAN_RE = re.compile(r"\{[\s\S]*\}")
_decoder = json.JSONDecoder()


@dataclass(frozen=True, slots=True)
class ParsedJudgment:
    """A JSON object was found in the reply.

    ``schema_errors`` lists where it departs from ``JUDGMENT_SCHEMA``; empty
    means the model followed the structured output format exactly.
    """

    payload: Dict[str, Any]
    schema_errors: Tuple[str, ...] = ()

    @property
    def conforms(self) -> bool:
        return not self.schema_errors


@dataclass(frozen=True, slots=True)
class ParseFailure:
    """No usable JSON object was found in the reply."""

    reason: str
    raw: str = ""


ParseResult = Union[ParsedJudgment, ParseFailure]


def extract_first_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Return the first well-formed JSON object embedded in ``text``.

    The widest ``{...}`` span is tried first; when that does not decode (for
    example because prose with braces follows the object) each ``{`` is tried
    in turn with ``raw_decode``.
    """
    match = _JSON_SPAN_RE.search(text)
    if match is None:
        return None
    try:
        payload = json.loads(match.group(0))
        if isinstance(payload, dict):
            return payload
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    while start != -1:
        try:
            payload, _ = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            payload = None
        if isinstance(payload, dict):
            return payload
        start = text.find("{", start + 1)
    return None


def judgment_schema_errors(payload: Any) -> Tuple[str, ...]:
    """Validation messages for ``payload`` against ``JUDGMENT_SCHEMA``, in document order."""
    errors = sorted(_judgment_validator.iter_errors(payload), key=lambda error: [str(part) for part in error.path])
    return tuple(error.message for error in errors)


def parse_judgment_reply(reply: str | None) -> ParseResult:
    """Classify a raw model reply as a parsed payload or a failure."""
    text = (reply or "").strip()
    if not text:
        return ParseFailure("empty reply")
    payload = extract_first_json_object(text)
    if payload is None:
        logger.warning("[PARSE] No JSON object in model reply: %.200s", text)
        return ParseFailure("no JSON object found", text)

    errors = judgment_schema_errors(payload)
    if errors:
        logger.warning("[PARSE] Reply does not match the judgment schema, normalizing: %s", "; ".join(errors))
    return ParsedJudgment(payload, errors)


def _coerce_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
        return default
    if isinstance(value, (int, float)):
        return bool(value)
    return default


def _coerce_violations(value: Any) -> FrozenSet[ViolationKind]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        return frozenset()
    kinds = (ViolationKind.parse(item) for item in value)
    return frozenset(kind for kind in kinds if kind is not None)


def _coerce_severity(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        return 0
    try:
        severity = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, min(MAX_SEVERITY, severity))


def normalize_judgment(payload: Mapping[str, Any], source: JudgmentSource = JudgmentSource.AI) -> Judgment:
    """Turn an arbitrary decoded payload into a well-formed :class:`Judgment`.

    Total: never raises. Missing ``safe`` means safe, unknown violation names
    are dropped and a ``violations`` value that is not a list counts as none.
    Severity is clamped to 0..10 and unknown actions become ``none``. The
    result always satisfies ``safe`` iff no violations and severity 0.
    """
    if not isinstance(payload, Mapping):
        return Judgment.clean(DEFAULT_REASON, source)

    safe = _coerce_bool(payload.get("safe"), True)
    violations = _coerce_violations(payload.get("violations"))
    severity = _coerce_severity(payload.get("severity"))
    action = ActionType.parse(payload.get("action")) or ActionType.NONE
    reason = str(payload.get("reason") or "").strip() or DEFAULT_REASON

    if safe or (not violations and severity == 0):
        return Judgment.clean(reason, source)

    return Judgment(
        safe=False,
        violations=violations,
        severity=severity,
        reason=reason,
        action=action,
        source=source,
    )
