"""Unit tests for taskops.engine.config — TaskOpsConfig and loading."""

import pytest
import yaml

from taskops.engine.config import (
    CONFIG_ENV_VAR,
    RollupConfig,
    TaskOpsConfig,
    default_config_yaml,
    get_config,
    load_config,
    reset_config,
    set_config,
)
from taskops.engine.errors import TaskOpsConfigError


class TestTaskOpsConfig:
    """Test TaskOpsConfig Pydantic model."""

    def test_defaults(self):
        cfg = TaskOpsConfig()
        assert cfg.name == "TaskOps"
        assert cfg.environment == "dev"
        assert cfg.database.pool_size == 10
        assert cfg.redis.url == "redis://localhost:6379/0"
        assert cfg.logging.level == "INFO"
        assert cfg.server.api_keys == []

    def test_business_defaults(self):
        cfg = TaskOpsConfig()
        assert cfg.escalation.manager_after_days == 3
        assert cfg.escalation.urgent_after_days == 7
        assert cfg.rollup.max_depth == 32
        assert cfg.rollup.max_retries == 3
        assert cfg.analytics.cache_ttl == 300
        assert cfg.scheduling.overdue_cron == "0 9 * * *"
        assert cfg.scheduling.reminders_cron == "*/15 * * * *"

    def test_valid_environments(self):
        for env in ("dev", "staging", "prod"):
            assert TaskOpsConfig(environment=env).environment == env

    def test_invalid_environment(self):
        with pytest.raises(ValueError, match="dev/staging/prod"):
            TaskOpsConfig(environment="test")

    def test_rollup_limits_must_be_positive(self):
        with pytest.raises(ValueError):
            RollupConfig(max_depth=0)


class TestLoadConfig:
    def test_missing_file_returns_defaults(self, tmp_path):
        cfg = load_config(str(tmp_path / "nonexistent.yaml"))
        assert cfg.name == "TaskOps"

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "taskops.yaml"
        path.write_text(
            "platform:\n"
            "  name: Ops\n"
            "  environment: staging\n"
            "escalation:\n"
            "  manager_after_days: 5\n"
            "server:\n"
            "  api_keys: [k1]\n",
            encoding="utf-8",
        )
        cfg = load_config(str(path))
        assert cfg.name == "Ops"
        assert cfg.environment == "staging"
        assert cfg.escalation.manager_after_days == 5
        assert cfg.escalation.urgent_after_days == 7
        assert cfg.server.api_keys == ["k1"]

    def test_env_var_path(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("platform:\n  name: FromEnv\n", encoding="utf-8")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert load_config().name == "FromEnv"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "taskops.yaml"
        path.write_text("platform: [unclosed\n", encoding="utf-8")
        with pytest.raises(TaskOpsConfigError, match="Invalid YAML"):
            load_config(str(path))

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "taskops.yaml"
        path.write_text("platform:\n  environment: local\n", encoding="utf-8")
        with pytest.raises(TaskOpsConfigError, match="Invalid configuration"):
            load_config(str(path))


class TestConfigSingleton:
    def test_set_and_get(self):
        cfg = TaskOpsConfig(name="Injected")
        set_config(cfg)
        assert get_config() is cfg

    def test_reset_reloads_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        set_config(TaskOpsConfig(name="Injected"))
        reset_config()
        assert get_config().name == "TaskOps"


class TestDefaultConfigYaml:
    def test_round_trips_through_loader(self, tmp_path):
        path = tmp_path / "taskops.yaml"
        path.write_text(default_config_yaml(), encoding="utf-8")
        assert load_config(str(path)) == TaskOpsConfig()

    def test_has_all_sections(self):
        data = yaml.safe_load(default_config_yaml())
        assert data["platform"]["name"] == "TaskOps"
        for section in ("database", "redis", "celery", "logging", "scheduling", "escalation"):
            assert section in data
