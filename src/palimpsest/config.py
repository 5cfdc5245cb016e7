"""Configuration loading and management."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from palimpsest.logging import DEFAULT_LOG_DIR
from palimpsest.models import SOURCES


@dataclass
class SourceConfig:
    enabled: bool = True
    paths: list[Path] = field(default_factory=list)


@dataclass
class Config:
    vault_path: Path = field(default_factory=lambda: Path("vault"))
    log_dir: Path = field(default_factory=lambda: DEFAULT_LOG_DIR)
    sources: dict[str, SourceConfig] = field(default_factory=dict)

    def source(self, name: str) -> SourceConfig:
        """Get the config for a source, falling back to defaults."""
        return self.sources.get(name, SourceConfig())


def expand_env_var(value: str) -> str:
    """Expand environment variables in string (e.g. ${VAR})."""
    if value.startswith("${") and value.endswith("}"):
        env_var = value[2:-1]
        return os.environ.get(env_var, value)
    return value


def expand_path(path_str: str) -> Path:
    """Expand ~ and environment variables in path."""
    return Path(os.path.expandvars(os.path.expanduser(path_str)))


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from YAML file."""
    if config_path is None:
        # Look for config in standard locations
        search_paths = [
            Path.cwd() / "palimpsest.yaml",
            Path.home() / ".config" / "palimpsest" / "config.yaml",
            Path("/etc/palimpsest/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = path
                break

    if config_path is None or not config_path.exists():
        return Config()

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    sources = {}
    for name, src_data in (data.get("sources") or {}).items():
        if name not in SOURCES:
            raise ValueError(f"Unknown source in config: {name}")
        src_data = src_data or {}
        sources[name] = SourceConfig(
            enabled=src_data.get("enabled", True),
            paths=[expand_path(expand_env_var(p)) for p in src_data.get("paths", [])],
        )

    return Config(
        vault_path=expand_path(expand_env_var(data.get("vault_path", "vault"))),
        log_dir=expand_path(expand_env_var(data.get("log_dir", str(DEFAULT_LOG_DIR)))),
        sources=sources,
    )
