"""Tests for config loading."""

from pathlib import Path

from playbookrunner.config import AppConfig, init_config, load_config


class TestConfig:
    def test_load_defaults(self, monkeypatch):
        """Loading with no file should return defaults."""
        monkeypatch.delenv("MONGODB_URI", raising=False)
        monkeypatch.delenv("PLAYBOOKRUNNER_DB", raising=False)
        config = load_config(Path("/nonexistent/config.toml"))
        assert config.mongodb.uri == "mongodb://localhost:27017"
        assert config.mongodb.database == "playbookrunner"
        assert config.scheduler.poll_interval == 30
        assert config.knowledge.marker == "[KNOWLEDGE]"
        assert config.knowledge.tags == ["playbooks"]
        assert config.signal.enabled is False
        assert config.signal.recipients == {}

    def test_env_overlay(self, monkeypatch):
        monkeypatch.setenv("MONGODB_URI", "mongodb://db.internal:27017")
        monkeypatch.setenv("PLAYBOOKRUNNER_DB", "playbooks_test")
        monkeypatch.setenv("KNOWLEDGE_API_KEY", "secret")
        config = load_config(Path("/nonexistent/config.toml"))
        assert config.mongodb.uri == "mongodb://db.internal:27017"
        assert config.mongodb.database == "playbooks_test"
        assert config.knowledge.api_key == "secret"

    def test_file_values(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PLAYBOOKRUNNER_DB", raising=False)
        path = tmp_path / "config.toml"
        path.write_text(
            '[mongodb]\ndatabase = "ops"\n'
            '[scheduler]\npoll_interval = 5\ndefault_timezone = "Europe/Berlin"\n'
            '[signal]\nenabled = true\naccount = "+15550001111"\n'
            '[signal.recipients]\nalice = "+15550002222"\n'
        )
        config = load_config(path)
        assert config.mongodb.database == "ops"
        assert config.scheduler.poll_interval == 5
        assert config.scheduler.default_timezone == "Europe/Berlin"
        assert config.signal.enabled is True
        assert config.signal.recipients == {"alice": "+15550002222"}
        assert config.config_path == path

    def test_defaults_without_loading(self):
        config = AppConfig()
        assert config.knowledge.top_k == 5
        assert config.scheduler.default_timezone == "UTC"

    def test_init_config(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PLAYBOOKRUNNER_DB", raising=False)
        path = tmp_path / "nested" / "config.toml"
        result = init_config(path)
        assert result == path
        assert path.exists()
        # Should be loadable
        config = load_config(path)
        assert config.mongodb.database == "playbookrunner"
