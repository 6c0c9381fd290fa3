"""Conversational assistant used by ``/chat``.

Plain request/response over ``AsyncOpenAI``. Recent turns of the
conversation are supplied by the caller; this module neither reads nor writes
storage and is independent of the moderation pipeline.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

from openai import AsyncOpenAI
from openai.types.chat import ChatCompletionMessageParam

from serversense.configuration.ai_settings import AISettings
from serversense.configuration.app_configuration import app_config
from serversense.util.format_utils import truncate
from serversense.util.logger import get_logger

logger = get_logger("assistant")

MAX_REPLY_LENGTH = 1900
HISTORY_TURNS = 10
MAX_STORED_TURNS = 20


class AssistantUnavailable(RuntimeError):
    """The assistant could not produce a reply. The message is user-facing."""


class AssistantClient:
    """Thin chat-completions wrapper with a configurable persona."""

    def __init__(self, settings: Optional[AISettings] = None, client: Optional[AsyncOpenAI] = None) -> None:
        self.settings = settings or app_config.ai_settings
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.request_timeout,
            )
        return self._client

    def build_messages(
        self, prompt: str, history: List[Dict[str, str]], user_name: str = ""
    ) -> List[ChatCompletionMessageParam]:
        system_prompt = self.settings.assistant_system_prompt
        if user_name:
            system_prompt = f"{system_prompt}\nYou are talking to {user_name}."
        messages: List[ChatCompletionMessageParam] = [{"role": "system", "content": system_prompt}]
        for turn in history[-HISTORY_TURNS:]:
            if turn.get("role") in ("user", "assistant") and turn.get("content"):
                messages.append({"role": turn["role"], "content": turn["content"]})  # type: ignore[misc]
        messages.append({"role": "user", "content": prompt})
        return messages

    async def reply(self, prompt: str, history: List[Dict[str, str]], user_name: str = "") -> str:
        """
        Ask the model for a reply to ``prompt``.

        Returns:
            The reply trimmed to 1900 characters.

        Raises:
            AssistantUnavailable: When AI is disabled, the request fails or
                the model returns nothing.
        """
        if not self.settings.enabled:
            raise AssistantUnavailable("The AI assistant is disabled on this bot.")

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.settings.assistant_model,
                    messages=self.build_messages(prompt, history, user_name),
                    max_tokens=self.settings.assistant_max_tokens,
                    temperature=self.settings.assistant_temperature,
                ),
                timeout=self.settings.request_timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error("[ASSISTANT] Request timed out")
            raise AssistantUnavailable("The AI took too long to respond. Try again in a moment.") from exc
        except Exception as exc:
            logger.error("[ASSISTANT] Chat completion failed: %s", exc)
            raise AssistantUnavailable("Sorry, I couldn't process that request right now.") from exc

        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise AssistantUnavailable("The AI returned an empty response.")
        return truncate(content, MAX_REPLY_LENGTH)
