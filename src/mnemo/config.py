"""Configuration loading from environment variables and mnemo.toml."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

logger = logging.getLogger(__name__)

_CONFIG_FILENAME = "mnemo.toml"
_TRUTHY = ("true", "1", "yes")


@dataclass
class GitHubConfig:
    """Repository used as the memory store."""

    token: str = ""
    owner: str = ""
    repo: str = ""
    template_owner: str = "terao-ryohei"
    template_repo: str = "myLife"
    repo_private: bool = True
    api_url: str = "https://api.github.com"
    timeout: int = 30


@dataclass
class MemoryConfig:
    """Index and cache tuning."""

    index_cache_ttl: float = 60.0
    revision_cache_ttl: float = 300.0
    create_attempts: int = 3


@dataclass
class ReminderConfig:
    """Reminder checker configuration."""

    check_interval: int = 60
    max_fire_per_tick: int = 10


@dataclass
class MnemoConfig:
    """Top-level configuration."""

    github: GitHubConfig = field(default_factory=GitHubConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    reminder: ReminderConfig = field(default_factory=ReminderConfig)
    log_level: str = "INFO"


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUTHY


def load_config(config_path: Path | None = None) -> MnemoConfig:
    """Load configuration from environment variables and optional mnemo.toml.

    Priority: environment variables > mnemo.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.mnemo/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, Path.home() / ".mnemo" / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    github_data = file_data.get("github", {})
    memory_data = file_data.get("memory", {})
    reminder_data = file_data.get("reminder", {})

    config = MnemoConfig(
        github=GitHubConfig(
            token=os.getenv("GITHUB_TOKEN", github_data.get("token", "")),
            owner=os.getenv("GITHUB_OWNER", github_data.get("owner", "")),
            repo=os.getenv("GITHUB_REPO", github_data.get("repo", "")),
            template_owner=os.getenv(
                "GITHUB_TEMPLATE_OWNER", github_data.get("template_owner", "terao-ryohei")
            ),
            template_repo=os.getenv(
                "GITHUB_TEMPLATE_REPO", github_data.get("template_repo", "myLife")
            ),
            repo_private=_as_bool(
                os.getenv("GITHUB_REPO_PRIVATE", github_data.get("repo_private", True))
            ),
            api_url=os.getenv(
                "GITHUB_API_URL", github_data.get("api_url", "https://api.github.com")
            ).rstrip("/"),
            timeout=int(github_data.get("timeout", 30)),
        ),
        memory=MemoryConfig(
            index_cache_ttl=float(
                os.getenv("MNEMO_INDEX_CACHE_TTL", memory_data.get("index_cache_ttl", 60.0))
            ),
            revision_cache_ttl=float(memory_data.get("revision_cache_ttl", 300.0)),
            create_attempts=int(memory_data.get("create_attempts", 3)),
        ),
        reminder=ReminderConfig(
            check_interval=int(
                os.getenv("MNEMO_REMINDER_INTERVAL", reminder_data.get("check_interval", 60))
            ),
            max_fire_per_tick=int(reminder_data.get("max_fire_per_tick", 10)),
        ),
        log_level=os.getenv("MNEMO_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config


def validate_config(config: MnemoConfig) -> None:
    """Fail fast on missing GitHub settings; warn on suspicious token format."""
    missing = [
        name
        for name, value in (
            ("token", config.github.token),
            ("owner", config.github.owner),
            ("repo", config.github.repo),
        )
        if not value
    ]
    if missing:
        raise ValueError(f"Missing GitHub configuration: {', '.join(missing)}")

    if not config.github.token.startswith(("ghp_", "github_pat_")):
        logger.warning("GITHUB_TOKEN format may be invalid")
