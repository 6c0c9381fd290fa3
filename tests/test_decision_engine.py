"""Tests for the two-tier decision engine."""

from unittest.mock import AsyncMock

import pytest

from serversense.datatypes.moderation_datatypes import (
    ActionType,
    Judgment,
    JudgmentSource,
    ViolationKind,
)
from serversense.moderation.decision_engine import DecisionEngine


def _engine(ai_judgment):
    judge = AsyncMock()
    judge.judge = AsyncMock(return_value=ai_judgment)
    return DecisionEngine(judge), judge


@pytest.mark.asyncio
async def test_six_mentions_short_circuit_without_ai():
    engine, judge = _engine(Judgment.clean())
    text = " ".join(f"<@{i}>" for i in range(1, 7))

    judgment = await engine.decide(text)

    assert judgment.source is JudgmentSource.PATTERN
    assert judgment.action is ActionType.DELETE
    assert judgment.severity == 4
    assert ViolationKind.SPAM in judgment.violations
    judge.judge.assert_not_called()


@pytest.mark.asyncio
async def test_caps_with_safe_ai_is_quick_warn():
    engine, judge = _engine(Judgment.clean("Fine"))

    judgment = await engine.decide("THIS IS SO ANNOYING")

    assert judgment.safe is False
    assert judgment.source is JudgmentSource.QUICK
    assert judgment.action is ActionType.WARN
    assert judgment.severity == 2
    assert judgment.violations == frozenset({ViolationKind.SPAM})
    judge.judge.assert_awaited_once()


@pytest.mark.asyncio
async def test_invite_with_safe_ai_is_quick_delete():
    engine, _ = _engine(Judgment.clean())

    judgment = await engine.decide("come join discord.gg/abcdef")

    assert judgment.source is JudgmentSource.QUICK
    assert judgment.action is ActionType.DELETE
    assert judgment.violations == frozenset({ViolationKind.ADVERTISING})


@pytest.mark.asyncio
async def test_findings_with_unsafe_ai_are_combined():
    ai_judgment = Judgment(
        safe=False,
        violations=frozenset({ViolationKind.TOXICITY}),
        severity=5,
        reason="Shouted insult",
        action=ActionType.DELETE,
    )
    engine, _ = _engine(ai_judgment)

    judgment = await engine.decide("YOU ARE ALL IDIOTS")

    assert judgment.source is JudgmentSource.COMBINED
    assert judgment.violations == frozenset({ViolationKind.TOXICITY, ViolationKind.SPAM})
    assert judgment.severity == 5
    assert judgment.reason == "Shouted insult"
    assert judgment.action is ActionType.DELETE


@pytest.mark.asyncio
async def test_no_findings_returns_ai_judgment():
    ai_judgment = Judgment(
        safe=False,
        violations=frozenset({ViolationKind.THREATS}),
        severity=8,
        reason="Threat",
        action=ActionType.TIMEOUT,
        source=JudgmentSource.COMBINED,
    )
    engine, _ = _engine(ai_judgment)

    judgment = await engine.decide("i know where you live")

    assert judgment.source is JudgmentSource.AI
    assert judgment.severity == 8
    assert judgment.action is ActionType.TIMEOUT


@pytest.mark.asyncio
async def test_clean_message_is_safe():
    engine, _ = _engine(Judgment.clean("Normal chat"))

    judgment = await engine.decide("good morning folks")

    assert judgment.safe is True
