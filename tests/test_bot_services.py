from unittest.mock import MagicMock

from serversense.bot.bot_services import build_services
from serversense.configuration.app_configuration import AppConfig
from serversense.moderation.enforcement import EnforcementCoordinator


def test_build_services_wires_shared_collaborators(tmp_path):
    config_path = tmp_path / "app_config.yml"
    config_path.write_text(
        "ai_settings:\n  model_name: judge-model\njudgment_cache:\n  ttl_seconds: 15\n  soft_capacity: 10\n",
        encoding="utf-8",
    )
    database = MagicMock()

    services = build_services(MagicMock(), database, AppConfig(config_path))

    assert services.database is database
    assert services.cache.ttl_seconds == 15
    assert services.cache.soft_capacity == 10
    assert services.judge.cache is services.cache
    assert services.judge.settings.model_name == "judge-model"
    assert isinstance(services.enforcement, EnforcementCoordinator)
    assert services.enforcement.store is database
    assert services.pipeline.policies is database
    assert services.pipeline.enforcement is services.enforcement
    assert services.pipeline.decision_engine.judge is services.judge
