"""Tests for configuration loading."""

import logging
from pathlib import Path

import pytest

from mnemo.config import MnemoConfig, GitHubConfig, load_config, validate_config

ENV_KEYS = [
    "GITHUB_TOKEN",
    "GITHUB_OWNER",
    "GITHUB_REPO",
    "GITHUB_TEMPLATE_OWNER",
    "GITHUB_TEMPLATE_REPO",
    "GITHUB_REPO_PRIVATE",
    "GITHUB_API_URL",
    "MNEMO_LOG_LEVEL",
    "MNEMO_INDEX_CACHE_TTL",
    "MNEMO_REMINDER_INTERVAL",
]


@pytest.fixture
def clean_env(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestConfig:
    def test_defaults(self, clean_env):
        config = load_config()
        assert config.github.token == ""
        assert config.github.template_owner == "terao-ryohei"
        assert config.github.template_repo == "myLife"
        assert config.github.repo_private is True
        assert config.github.api_url == "https://api.github.com"
        assert config.memory.index_cache_ttl == 60.0
        assert config.memory.create_attempts == 3
        assert config.reminder.check_interval == 60
        assert config.reminder.max_fire_per_tick == 10
        assert config.log_level == "INFO"

    def test_env_override(self, clean_env, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_abc")
        monkeypatch.setenv("GITHUB_OWNER", "alice")
        monkeypatch.setenv("GITHUB_REPO", "notes")
        monkeypatch.setenv("GITHUB_REPO_PRIVATE", "false")
        monkeypatch.setenv("GITHUB_API_URL", "http://localhost:9000/")
        monkeypatch.setenv("MNEMO_INDEX_CACHE_TTL", "5")

        config = load_config()
        assert config.github.token == "ghp_abc"
        assert config.github.owner == "alice"
        assert config.github.repo == "notes"
        assert config.github.repo_private is False
        assert config.github.api_url == "http://localhost:9000"
        assert config.memory.index_cache_ttl == 5.0

    def test_toml_file(self, clean_env, tmp_path: Path):
        toml_path = tmp_path / "mnemo.toml"
        toml_path.write_text("""
log_level = "DEBUG"

[github]
owner = "bob"
repo = "brain"
timeout = 10

[memory]
create_attempts = 5

[reminder]
check_interval = 15
""")
        config = load_config(toml_path)
        assert config.github.owner == "bob"
        assert config.github.repo == "brain"
        assert config.github.timeout == 10
        assert config.memory.create_attempts == 5
        assert config.reminder.check_interval == 15
        assert config.log_level == "DEBUG"

    def test_toml_found_in_cwd(self, clean_env, tmp_path: Path):
        (tmp_path / "mnemo.toml").write_text('[github]\nrepo = "from-cwd"\n')
        config = load_config()
        assert config.github.repo == "from-cwd"

    def test_env_overrides_toml(self, clean_env, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("GITHUB_REPO", "from-env")

        toml_path = tmp_path / "mnemo.toml"
        toml_path.write_text('[github]\nrepo = "from-file"\n')
        config = load_config(toml_path)
        assert config.github.repo == "from-env"  # env wins


class TestValidateConfig:
    def test_missing_settings(self):
        config = MnemoConfig(github=GitHubConfig(token="ghp_x"))
        with pytest.raises(ValueError, match="owner, repo"):
            validate_config(config)

    def test_valid(self):
        validate_config(MnemoConfig(github=GitHubConfig(token="ghp_x", owner="o", repo="r")))

    def test_warns_on_odd_token(self, caplog):
        config = MnemoConfig(github=GitHubConfig(token="token123", owner="o", repo="r"))
        with caplog.at_level(logging.WARNING):
            validate_config(config)
        assert "GITHUB_TOKEN format may be invalid" in caplog.text
