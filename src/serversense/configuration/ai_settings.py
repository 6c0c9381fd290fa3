import os
from typing import Any, Dict

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_ASSISTANT_PROMPT = (
    "You are ServerSense, a helpful AI assistant for Discord servers. Be concise, "
    "friendly, and helpful. Keep responses under 1500 characters when possible."
)


class AISettings:
    """Helper exposing typed accessors for the ``ai_settings`` config section.

    Only explicit helpers are provided (`get` and properties);
    callers should not treat this object as a mapping.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` or `default` if missing."""
        return self.data.get(key, default)

    @property
    def enabled(self) -> bool:
        return bool(self.data.get("enabled", True))

    @property
    def api_key(self) -> str | None:
        """API key from the config file, falling back to ``OPENAI_API_KEY``."""
        val = self.data.get("api_key") or os.getenv("OPENAI_API_KEY")
        return str(val) if val else None

    @property
    def base_url(self) -> str | None:
        val = self.data.get("base_url")
        return str(val) if val else None

    @property
    def model_name(self) -> str:
        return str(self.data.get("model_name") or os.getenv("OPENAI_MODEL") or DEFAULT_MODEL)

    @property
    def request_timeout(self) -> float:
        return float(self.data.get("request_timeout", 20.0))

    @property
    def judge_max_tokens(self) -> int:
        return int(self.data.get("judge_max_tokens", 200))

    @property
    def judge_temperature(self) -> float:
        return float(self.data.get("judge_temperature", 0.1))

    @property
    def structured_output(self) -> bool:
        """Send the judgment JSON schema as ``response_format``; turn off for endpoints that reject it."""
        return bool(self.data.get("structured_output", True))

    @property
    def assistant(self) -> Dict[str, Any]:
        section = self.data.get("assistant", {})
        return section if isinstance(section, dict) else {}

    @property
    def assistant_model(self) -> str:
        return str(self.assistant.get("model_name") or self.model_name)

    @property
    def assistant_max_tokens(self) -> int:
        return int(self.assistant.get("max_tokens", 512))

    @property
    def assistant_temperature(self) -> float:
        return float(self.assistant.get("temperature", 0.7))

    @property
    def assistant_system_prompt(self) -> str:
        return str(self.assistant.get("system_prompt") or DEFAULT_ASSISTANT_PROMPT)
