"""Configuration loading: TOML file + environment variable overlay."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "playbookrunner"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.toml"


DEFAULT_CONFIG_TOML = """\
[mongodb]
uri = "mongodb://localhost:27017"
database = "playbookrunner"

[scheduler]
poll_interval = 30
default_timezone = "UTC"

[knowledge]
base_url = "http://localhost:8051"
api_key_env = "KNOWLEDGE_API_KEY"
timeout = 10.0
marker = "[KNOWLEDGE]"
tags = ["playbooks"]
top_k = 5

[signal]
enabled = false
account = ""
http_url = "http://127.0.0.1:8080"

[signal.recipients]
# participant-id = "+15550000000"
"""


@dataclass
class MongoConfig:
    uri: str = "mongodb://localhost:27017"
    database: str = "playbookrunner"


@dataclass
class SchedulerConfig:
    poll_interval: int = 30
    default_timezone: str = "UTC"


@dataclass
class KnowledgeConfig:
    base_url: str = "http://localhost:8051"
    api_key_env: str = "KNOWLEDGE_API_KEY"
    api_key: str = ""
    timeout: float = 10.0
    marker: str = "[KNOWLEDGE]"
    tags: list[str] = field(default_factory=lambda: ["playbooks"])
    top_k: int = 5


@dataclass
class SignalConfig:
    enabled: bool = False
    account: str = ""
    http_url: str = "http://127.0.0.1:8080"
    recipients: dict[str, str] = field(default_factory=dict)


@dataclass
class AppConfig:
    mongodb: MongoConfig = field(default_factory=MongoConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    knowledge: KnowledgeConfig = field(default_factory=KnowledgeConfig)
    signal: SignalConfig = field(default_factory=SignalConfig)
    config_path: Path = DEFAULT_CONFIG_PATH


def _env_overlay(config: AppConfig) -> None:
    """Override config values with environment variables where applicable."""
    if uri := os.environ.get("MONGODB_URI"):
        config.mongodb.uri = uri
    if db := os.environ.get("PLAYBOOKRUNNER_DB"):
        config.mongodb.database = db

    if config.knowledge.api_key_env:
        config.knowledge.api_key = os.environ.get(config.knowledge.api_key_env, "")


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration from TOML file with env var overlay."""
    path = config_path or DEFAULT_CONFIG_PATH

    if path.exists():
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    else:
        raw = tomllib.loads(DEFAULT_CONFIG_TOML)

    mongo_raw = raw.get("mongodb", {})
    scheduler_raw = raw.get("scheduler", {})
    knowledge_raw = raw.get("knowledge", {})
    signal_raw = raw.get("signal", {})

    config = AppConfig(
        mongodb=MongoConfig(
            uri=mongo_raw.get("uri", "mongodb://localhost:27017"),
            database=mongo_raw.get("database", "playbookrunner"),
        ),
        scheduler=SchedulerConfig(
            poll_interval=scheduler_raw.get("poll_interval", 30),
            default_timezone=scheduler_raw.get("default_timezone", "UTC"),
        ),
        knowledge=KnowledgeConfig(
            base_url=knowledge_raw.get("base_url", "http://localhost:8051"),
            api_key_env=knowledge_raw.get("api_key_env", "KNOWLEDGE_API_KEY"),
            timeout=float(knowledge_raw.get("timeout", 10.0)),
            marker=knowledge_raw.get("marker", "[KNOWLEDGE]"),
            tags=list(knowledge_raw.get("tags", ["playbooks"])),
            top_k=knowledge_raw.get("top_k", 5),
        ),
        signal=SignalConfig(
            enabled=signal_raw.get("enabled", False),
            account=signal_raw.get("account", ""),
            http_url=signal_raw.get("http_url", "http://127.0.0.1:8080"),
            recipients=dict(signal_raw.get("recipients", {})),
        ),
        config_path=path,
    )

    _env_overlay(config)
    return config


def init_config(config_path: Path | None = None) -> Path:
    """Create default config file."""
    path = config_path or DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG_TOML)
    return path
