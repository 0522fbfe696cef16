"""Tests for configuration management."""

from pathlib import Path

import pytest

from cesta.config import ConfigManager, RecognitionConfig


@pytest.fixture
def config_file(tmp_path):
    """Create a temporary config file."""
    config_path = tmp_path / "config.toml"
    config_path.write_text("""
[data]
storage_dir = "/custom/data"
backend = "sqlite"

[defaults]
store = "Mercadona"
category = "Despensa"

[matching]
threshold = 0.5
max_suggestions = 3

[comparison]
max_workers = 2

[recognition]
api_key = "file-key-0123456789"
model = "gemini-1.5-flash"

[budget]
monthly_limit = 400.0
""")
    return config_path


@pytest.fixture(autouse=True)
def no_env_key(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)


class TestConfigManager:
    """Tests for ConfigManager."""

    def test_load_config_file(self, config_file):
        """Load configuration from file."""
        manager = ConfigManager(config_path=config_file)

        assert manager.data.storage_dir == Path("/custom/data")
        assert manager.data.backend == "sqlite"

    def test_defaults_config(self, config_file):
        manager = ConfigManager(config_path=config_file)

        assert manager.defaults.store == "Mercadona"
        assert manager.defaults.category == "Despensa"

    def test_matching_and_comparison(self, config_file):
        manager = ConfigManager(config_path=config_file)

        assert manager.matching.threshold == 0.5
        assert manager.matching.max_suggestions == 3
        assert manager.comparison.max_workers == 2

    def test_recognition_config(self, config_file):
        manager = ConfigManager(config_path=config_file)

        assert manager.recognition.api_key == "file-key-0123456789"
        assert manager.recognition.model == "gemini-1.5-flash"
        assert manager.recognition.is_configured is True

    def test_env_key_overrides_file(self, config_file, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "env-key-0123456789")

        manager = ConfigManager(config_path=config_file)

        assert manager.recognition.api_key == "env-key-0123456789"

    def test_budget(self, config_file):
        manager = ConfigManager(config_path=config_file)

        assert manager.budget.monthly_limit == 400.0

    def test_missing_file_uses_defaults(self, tmp_path):
        """Missing config file returns defaults."""
        manager = ConfigManager(config_path=tmp_path / "nonexistent.toml")

        assert manager.data.backend == "json"
        assert manager.defaults.category == "Otros"
        assert manager.matching.threshold == 0.3
        assert manager.matching.max_suggestions == 5
        assert manager.comparison.max_workers == 4
        assert manager.budget.monthly_limit == 0.0
        assert manager.recognition.is_configured is False

    def test_get_dot_notation(self, config_file):
        manager = ConfigManager(config_path=config_file)

        assert manager.get("defaults.store") == "Mercadona"
        assert manager.get("defaults.category") == "Despensa"
        assert manager.get("recognition.api_key", "n/a") == "file-key-0123456789"
        assert manager.get("matching.unknown", "n/a") == "n/a"
        assert manager.get("nonexistent.key", 42) == 42


class TestRecognitionConfig:
    @pytest.mark.parametrize(
        "api_key,expected",
        [(None, False), ("", False), ("123456789", False), ("1234567890", True)],
    )
    def test_is_configured(self, api_key, expected):
        assert RecognitionConfig(api_key=api_key).is_configured is expected
