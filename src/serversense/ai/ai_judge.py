"""AI moderation judge backed by an OpenAI-compatible chat completions API.

- Skips texts shorter than three characters without calling the model.
- Serves repeat texts from the shared :class:`JudgmentCache`.
- Requests structured output matching ``JUDGMENT_SCHEMA`` unless
  ``ai_settings.structured_output`` is off.
- Fails open: network errors, timeouts and unparseable replies produce a safe
  judgment so a flaky endpoint never blocks messages.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI
from openai.types.chat import ChatCompletionMessageParam
from openai.types.shared_params.response_format_json_schema import ResponseFormatJSONSchema

from serversense.ai.judgment_parsing import JUDGMENT_SCHEMA, ParseFailure, normalize_judgment, parse_judgment_reply
from serversense.configuration.ai_settings import AISettings
from serversense.configuration.app_configuration import app_config
from serversense.datatypes.moderation_datatypes import Judgment, JudgmentSource, MessageContext
from serversense.moderation.judgment_cache import JudgmentCache
from serversense.util.logger import get_logger

logger = get_logger("ai_judge")

MIN_TEXT_LENGTH = 3
ANALYSIS_FAILED_REASON = "Analysis failed"

JUDGMENT_RESPONSE_FORMAT = ResponseFormatJSONSchema(
    type="json_schema",
    json_schema={
        "name": "moderation_judgment",
        "strict": True,
        "schema": JUDGMENT_SCHEMA,
    },
)

MODERATION_SYSTEM_PROMPT = """You are a Discord content moderator AI. Analyze the following message and determine if it violates any rules.

Check for:
1. TOXICITY - Harassment, hate speech, personal attacks, bullying
2. SPAM - Repetitive content, excessive caps (>70%), excessive emojis (>10), gibberish
3. SLURS - Racial slurs, homophobic slurs, ableist slurs, any discriminatory language
4. NSFW - Sexual content, explicit descriptions, inappropriate suggestions
5. THREATS - Violence threats, doxxing threats, harm to self or others
6. ADVERTISING - Unsolicited links, server invites, promotions
7. SCAM - Phishing attempts, fake giveaways, suspicious links

Respond ONLY with valid JSON in this exact format:
{
    "safe": boolean,
    "violations": ["TOXICITY" | "SPAM" | "SLURS" | "NSFW" | "THREATS" | "ADVERTISING" | "SCAM"],
    "severity": 1-10,
    "reason": "brief explanation",
    "action": "none" | "warn" | "delete" | "timeout" | "kick" | "ban"
}

Severity guide:
- 1-3: Minor (warn)
- 4-6: Moderate (delete + warn)
- 7-8: Serious (delete + timeout)
- 9-10: Severe (delete + ban consideration)

Be strict but fair. Context matters - gaming trash talk is different from genuine harassment.
Do NOT flag normal conversation, jokes, or mild language."""


def failed_judgment() -> Judgment:
    return Judgment.clean(ANALYSIS_FAILED_REASON, JudgmentSource.AI)


def build_user_prompt(text: str, context: Optional[MessageContext] = None) -> str:
    """Render the user turn: the quoted message plus any known sender/channel/guild names."""
    lines = ["Analyze this Discord message:", f'"{text}"', ""]
    if context is not None:
        if context.sender_name:
            lines.append(f"Sender: {context.sender_name}")
        if context.channel_name:
            lines.append(f"Channel: #{context.channel_name}")
        if context.guild_name:
            lines.append(f"Server: {context.guild_name}")
    return "\n".join(lines).rstrip()


class AIJudge:
    """
    Classify a message with one chat completion per uncached text.

    Args:
        cache: Judgment cache shared with the rest of the process.
        settings: AI settings; ``app_config.ai_settings`` when omitted.
        client: Pre-built client, mainly for tests. Built lazily from
            ``settings`` otherwise.
    """

    def __init__(
        self,
        cache: JudgmentCache,
        settings: Optional[AISettings] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        if settings is None:
            settings = app_config.ai_settings
        self.cache = cache
        self.settings = settings
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.request_timeout,
            )
            logger.info(
                "[AI JUDGE] Initialized client with base_url=%s, model=%s",
                self.settings.base_url or "default",
                self.settings.model_name,
            )
        return self._client

    def build_messages(self, text: str, context: Optional[MessageContext]) -> List[ChatCompletionMessageParam]:
        return [
            {"role": "system", "content": MODERATION_SYSTEM_PROMPT},
            {"role": "user", "content": build_user_prompt(text, context)},
        ]

    def build_request(self, text: str, context: Optional[MessageContext]) -> Dict[str, Any]:
        """Keyword arguments for ``chat.completions.create``."""
        request: Dict[str, Any] = {
            "model": self.settings.model_name,
            "messages": self.build_messages(text, context),
            "max_tokens": self.settings.judge_max_tokens,
            "temperature": self.settings.judge_temperature,
        }
        if self.settings.structured_output:
            request["response_format"] = JUDGMENT_RESPONSE_FORMAT
        return request

    async def judge(self, text: str, context: Optional[MessageContext] = None) -> Judgment:
        """
        Return a judgment for ``text``. Never raises.

        Args:
            text: Message content to classify.
            context: Optional sender/channel/guild names passed to the model.

        Returns:
            Judgment: Cached or freshly normalized verdict, or a fail-open safe
            judgment with reason ``Analysis failed``.
        """
        if len(text) < MIN_TEXT_LENGTH:
            return Judgment.clean(source=JudgmentSource.AI)

        cached = self.cache.get(text)
        if cached is not None:
            logger.debug("[AI JUDGE] Cache hit for message (%d chars)", len(text))
            return cached

        if not self.settings.enabled:
            logger.debug("[AI JUDGE] AI analysis disabled in configuration, treating message as safe")
            return failed_judgment()

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(**self.build_request(text, context)),
                timeout=self.settings.request_timeout,
            )
            reply = response.choices[0].message.content or ""
        except asyncio.TimeoutError:
            logger.error("[AI JUDGE] Request timed out after %.0fs", self.settings.request_timeout)
            return failed_judgment()
        except Exception as exc:
            logger.error("[AI JUDGE] Moderation request failed: %s", exc)
            return failed_judgment()

        parsed = parse_judgment_reply(reply)
        if isinstance(parsed, ParseFailure):
            logger.warning("[AI JUDGE] Unusable reply (%s), failing open", parsed.reason)
            return failed_judgment()

        judgment = normalize_judgment(parsed.payload, JudgmentSource.AI)
        self.cache.put(text, judgment)

        logger.debug(
            "[AI JUDGE] safe=%s severity=%d violations=%s action=%s",
            judgment.safe,
            judgment.severity,
            ",".join(judgment.violation_names()) or "none",
            judgment.action,
        )
        return judgment
