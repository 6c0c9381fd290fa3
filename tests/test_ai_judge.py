"""Tests for the AI judge adapter using a fake OpenAI client."""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from serversense.ai.ai_judge import (
    ANALYSIS_FAILED_REASON,
    JUDGMENT_RESPONSE_FORMAT,
    MODERATION_SYSTEM_PROMPT,
    AIJudge,
    build_user_prompt,
)
from serversense.ai.judgment_parsing import JUDGMENT_SCHEMA
from serversense.configuration.ai_settings import AISettings
from serversense.datatypes.moderation_datatypes import ActionType, JudgmentSource, MessageContext, ViolationKind
from serversense.moderation.judgment_cache import JudgmentCache


def _response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _fake_client(reply=None, side_effect=None):
    create = AsyncMock(return_value=_response(reply), side_effect=side_effect)
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create))), create


def _judge(client, **settings):
    data = {"model_name": "test-model", "request_timeout": 5}
    data.update(settings)
    return AIJudge(JudgmentCache(), settings=AISettings(data), client=client)


UNSAFE_REPLY = json.dumps(
    {"safe": False, "violations": ["TOXICITY"], "severity": 6, "reason": "Insult", "action": "delete"}
)


def test_build_user_prompt_includes_context_names():
    context = MessageContext(
        text="hi",
        message_id=1,
        guild_id=2,
        channel_id=3,
        sender_id=4,
        sender_name="alice",
        channel_name="general",
        guild_name="Cozy Place",
    )

    prompt = build_user_prompt("you are dumb", context)

    assert '"you are dumb"' in prompt
    assert "Sender: alice" in prompt
    assert "Channel: #general" in prompt
    assert "Server: Cozy Place" in prompt


def test_build_user_prompt_without_context():
    assert build_user_prompt("hello there") == 'Analyze this Discord message:\n"hello there"'


@pytest.mark.asyncio
async def test_short_text_is_safe_without_calling_model():
    client, create = _fake_client(UNSAFE_REPLY)
    judge = _judge(client)

    judgment = await judge.judge("hi")

    assert judgment.safe is True
    create.assert_not_called()


@pytest.mark.asyncio
async def test_unsafe_reply_is_normalized_and_sent_with_system_prompt():
    client, create = _fake_client(UNSAFE_REPLY)
    judge = _judge(client, judge_max_tokens=123, judge_temperature=0.2)

    judgment = await judge.judge("you are an idiot")

    assert judgment.safe is False
    assert judgment.violations == frozenset({ViolationKind.TOXICITY})
    assert judgment.severity == 6
    assert judgment.action is ActionType.DELETE
    assert judgment.source is JudgmentSource.AI

    kwargs = create.await_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["max_tokens"] == 123
    assert kwargs["temperature"] == pytest.approx(0.2)
    assert kwargs["messages"][0] == {"role": "system", "content": MODERATION_SYSTEM_PROMPT}


@pytest.mark.asyncio
async def test_repeat_text_within_ttl_uses_cache():
    client, create = _fake_client(UNSAFE_REPLY)
    judge = _judge(client)

    first = await judge.judge("you are an idiot")
    second = await judge.judge("  YOU ARE AN IDIOT ")

    assert first == second
    assert create.await_count == 1


@pytest.mark.asyncio
async def test_request_error_fails_open():
    client, create = _fake_client(side_effect=RuntimeError("connection refused"))
    judge = _judge(client)

    judgment = await judge.judge("some message")

    assert judgment.safe is True
    assert judgment.reason == ANALYSIS_FAILED_REASON


@pytest.mark.asyncio
async def test_timeout_fails_open():
    async def slow_create(**kwargs):
        await asyncio.sleep(1)
        return _response(UNSAFE_REPLY)

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=slow_create)))
    judge = _judge(client, request_timeout=0.01)

    judgment = await judge.judge("some message")

    assert judgment.safe is True
    assert judgment.reason == ANALYSIS_FAILED_REASON


@pytest.mark.asyncio
async def test_unparseable_reply_fails_open_and_is_not_cached():
    client, create = _fake_client("I think this is fine.")
    judge = _judge(client)

    judgment = await judge.judge("some message")
    await judge.judge("some message")

    assert judgment.reason == ANALYSIS_FAILED_REASON
    assert create.await_count == 2
    assert len(judge.cache) == 0


@pytest.mark.asyncio
async def test_disabled_settings_skip_model():
    client, create = _fake_client(UNSAFE_REPLY)
    judge = _judge(client, enabled=False)

    judgment = await judge.judge("some message")

    assert judgment.safe is True
    create.assert_not_called()


@pytest.mark.asyncio
async def test_request_asks_for_judgment_schema():
    client, create = _fake_client(UNSAFE_REPLY)
    judge = _judge(client)

    await judge.judge("you are an idiot")

    response_format = create.await_args.kwargs["response_format"]
    assert response_format is JUDGMENT_RESPONSE_FORMAT
    assert response_format["type"] == "json_schema"
    assert response_format["json_schema"]["name"] == "moderation_judgment"
    assert response_format["json_schema"]["schema"] is JUDGMENT_SCHEMA


@pytest.mark.asyncio
async def test_structured_output_can_be_turned_off():
    client, create = _fake_client(UNSAFE_REPLY)
    judge = _judge(client, structured_output=False)

    await judge.judge("you are an idiot")

    assert "response_format" not in create.await_args.kwargs


@pytest.mark.asyncio
async def test_reply_outside_schema_is_still_normalized():
    reply = json.dumps({"safe": "no", "violations": ["spam", "memes"], "severity": 14, "extra": 1})
    client, _ = _fake_client(reply)
    judge = _judge(client)

    judgment = await judge.judge("buy cheap followers now")

    assert judgment.safe is False
    assert judgment.violations == frozenset({ViolationKind.SPAM})
    assert judgment.severity == 10
    assert judgment.action is ActionType.NONE
