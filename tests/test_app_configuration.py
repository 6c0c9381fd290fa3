from pathlib import Path

import pytest
import yaml

from serversense.configuration.ai_settings import DEFAULT_ASSISTANT_PROMPT, DEFAULT_MODEL, AISettings
from serversense.configuration.app_configuration import AppConfig


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reload_parses_yaml(config_path: Path) -> None:
    config_payload = {
        "database_path": str(config_path.parent / "bot.db"),
        "ai_settings": {
            "enabled": True,
            "base_url": "http://localhost:8000/v1",
            "model_name": "test-model",
            "request_timeout": 5,
            "judge_max_tokens": 150,
            "assistant": {"max_tokens": 300, "system_prompt": "Be nice."},
        },
        "judgment_cache": {"ttl_seconds": 30, "soft_capacity": 50},
    }
    config_path.write_text(yaml.safe_dump(config_payload), encoding="utf-8")

    config = AppConfig(config_path)

    assert config.database_path == (config_path.parent / "bot.db").resolve()
    assert config.judgment_cache_ttl == pytest.approx(30.0)
    assert config.judgment_cache_capacity == 50

    ai_settings = config.ai_settings
    assert ai_settings.enabled is True
    assert ai_settings.base_url == "http://localhost:8000/v1"
    assert ai_settings.model_name == "test-model"
    assert ai_settings.request_timeout == pytest.approx(5.0)
    assert ai_settings.judge_max_tokens == 150
    assert ai_settings.assistant_model == "test-model"
    assert ai_settings.assistant_max_tokens == 300
    assert ai_settings.assistant_system_prompt == "Be nice."


def test_app_config_missing_file_returns_defaults(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_MODEL", raising=False)
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.data == {}
    assert config.judgment_cache_ttl == pytest.approx(60.0)
    assert config.judgment_cache_capacity == 1000
    assert config.database_path.name == "serversense.db"

    ai_settings = config.ai_settings
    assert ai_settings.enabled is True
    assert ai_settings.model_name == DEFAULT_MODEL
    assert ai_settings.request_timeout == pytest.approx(20.0)
    assert ai_settings.assistant_system_prompt == DEFAULT_ASSISTANT_PROMPT


def test_app_config_non_mapping_yaml_is_ignored(config_path: Path) -> None:
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    config = AppConfig(config_path)

    assert config.data == {}


def test_app_config_reload_picks_up_changes(config_path: Path) -> None:
    config_path.write_text("judgment_cache:\n  ttl_seconds: 10\n", encoding="utf-8")
    config = AppConfig(config_path)
    assert config.judgment_cache_ttl == pytest.approx(10.0)

    config_path.write_text("judgment_cache:\n  ttl_seconds: 20\n", encoding="utf-8")
    config.reload()

    assert config.judgment_cache_ttl == pytest.approx(20.0)


def test_ai_settings_api_key_falls_back_to_environment(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

    assert AISettings({}).api_key == "sk-env"
    assert AISettings({"api_key": "sk-file"}).api_key == "sk-file"


def test_ai_settings_blank_base_url_is_none() -> None:
    assert AISettings({"base_url": ""}).base_url is None
