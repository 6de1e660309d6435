"""Application configuration loaded from config.yaml."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass(frozen=True)
class LLMConfig:
    model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 8192
    max_attempts: int = 3
    timeout: int = 120

    def __post_init__(self) -> None:
        if not 1 <= self.max_tokens <= 64000:
            raise ValueError(f"max_tokens must be between 1 and 64000, got {self.max_tokens}")
        if not 1 <= self.max_attempts <= 10:
            raise ValueError(f"max_attempts must be between 1 and 10, got {self.max_attempts}")
        if self.timeout < 1:
            raise ValueError(f"timeout must be at least 1 second, got {self.timeout}")


@dataclass(frozen=True)
class StorageConfig:
    db_path: str = "~/.career-assistant/tasks.db"
    usage_db_path: str = "~/.career-assistant/usage.db"

    @property
    def resolved_db_path(self) -> Path:
        return Path(self.db_path).expanduser()

    @property
    def resolved_usage_db_path(self) -> Path:
        return Path(self.usage_db_path).expanduser()


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8000

    def __post_init__(self) -> None:
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}")


@dataclass(frozen=True)
class AuthConfig:
    # bearer token -> owner id
    tokens: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ExportConfig:
    margin: float = 40.0
    font_size: float = 10.0
    line_height: float = 14.0

    def __post_init__(self) -> None:
        if self.margin < 0:
            raise ValueError(f"margin must not be negative, got {self.margin}")
        if self.font_size <= 0:
            raise ValueError(f"font_size must be positive, got {self.font_size}")
        if self.line_height < self.font_size:
            raise ValueError(
                f"line_height must be at least font_size ({self.font_size}), got {self.line_height}"
            )


@dataclass(frozen=True)
class AppConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    export: ExportConfig = field(default_factory=ExportConfig)


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from YAML file, falling back to defaults."""
    if path is None:
        # Look for config.yaml relative to the project root
        candidates = [
            Path.cwd() / "config.yaml",
            Path(__file__).resolve().parent.parent.parent / "config.yaml",
        ]
        for c in candidates:
            if c.exists():
                path = c
                break

    raw: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            raw = yaml.safe_load(p.read_text()) or {}

    return AppConfig(
        llm=LLMConfig(**_section(raw, "llm")),
        storage=StorageConfig(**_section(raw, "storage")),
        server=ServerConfig(**_section(raw, "server")),
        auth=AuthConfig(tokens=dict(_section(raw, "auth").get("tokens") or {})),
        export=ExportConfig(**_section(raw, "export")),
    )


def _section(raw: dict, name: str) -> dict:
    # A key with no value (``auth:``) parses as None
    return raw.get(name) or {}
