"""Configuration dataclasses for GatongPass.

This module defines the configuration structure for the roster source,
the roster cache, verification throttling, and the document catalog.
Values can be loaded from a YAML settings file.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml  # type: ignore[import-untyped]

from gatong_pass.errors import ConfigError

logger = structlog.get_logger()

DEFAULT_ROSTER_URL = (
    "https://docs.google.com/spreadsheets/d/"
    "1Fnvbd2_oDlZ_JZ874smNhDoXDqvZhOzApjAFleeZIdU/export?format=csv&gid=153974185"
)

ROSTER_URL_ENV = "GATONG_ROSTER_URL"


@dataclass
class RosterConfig:
    """Roster source configuration."""

    url: str = DEFAULT_ROSTER_URL
    timeout_seconds: float = 10.0
    exclude_inactive: bool = True  # Skip rows with a non-blank 학적 value


@dataclass
class CacheConfig:
    """Roster cache configuration."""

    ttl_seconds: float = 300.0
    serve_stale_on_error: bool = False


@dataclass
class VerificationConfig:
    """Verification throttling configuration.

    ``max_attempts: 0`` disables throttling.
    """

    max_attempts: int = 5
    window_seconds: float = 600.0


@dataclass
class DocumentsConfig:
    """Document catalog configuration."""

    directory: Path = field(default_factory=lambda: Path("documents"))
    extensions: list[str] = field(
        default_factory=lambda: ["hwp", "hwpx", "pdf", "jpg", "png"]
    )


@dataclass
class AppConfig:
    """Main configuration for GatongPass.

    Example:
        config = AppConfig()
        config.cache.ttl_seconds = 60
        config.verification.max_attempts = 3
    """

    roster: RosterConfig = field(default_factory=RosterConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    verification: VerificationConfig = field(default_factory=VerificationConfig)
    documents: DocumentsConfig = field(default_factory=DocumentsConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        """Create an AppConfig from a dictionary (e.g., from YAML).

        Args:
            data: Dictionary with configuration values.

        Returns:
            AppConfig instance with values from the dictionary.
        """
        config = cls()

        if "roster" in data:
            roster_data = data["roster"]
            config.roster.url = roster_data.get("url", config.roster.url)
            config.roster.timeout_seconds = float(
                roster_data.get("timeout_seconds", config.roster.timeout_seconds)
            )
            config.roster.exclude_inactive = bool(
                roster_data.get("exclude_inactive", config.roster.exclude_inactive)
            )

        if "cache" in data:
            cache_data = data["cache"]
            config.cache.ttl_seconds = float(
                cache_data.get("ttl_seconds", config.cache.ttl_seconds)
            )
            config.cache.serve_stale_on_error = bool(
                cache_data.get("serve_stale_on_error", config.cache.serve_stale_on_error)
            )

        if "verification" in data:
            verify_data = data["verification"]
            config.verification.max_attempts = int(
                verify_data.get("max_attempts", config.verification.max_attempts)
            )
            config.verification.window_seconds = float(
                verify_data.get("window_seconds", config.verification.window_seconds)
            )

        if "documents" in data:
            docs_data = data["documents"]
            if "directory" in docs_data:
                config.documents.directory = Path(docs_data["directory"])
            if "extensions" in docs_data:
                config.documents.extensions = [
                    str(ext).lower().lstrip(".") for ext in docs_data["extensions"]
                ]

        return config


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load configuration from a YAML file, falling back to defaults.

    The ``GATONG_ROSTER_URL`` environment variable overrides the roster URL
    from any source.

    Raises:
        ConfigError: If the file exists but cannot be parsed.
    """
    if config_path is not None and config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}", path=str(config_path)) from e

        if not isinstance(data, dict):
            raise ConfigError(
                f"Top level of {config_path} must be a mapping", path=str(config_path)
            )

        config = AppConfig.from_dict(data)
        logger.info("config_loaded", path=str(config_path))
    else:
        config = AppConfig()
        logger.warning("using_default_config")

    env_url = os.environ.get(ROSTER_URL_ENV)
    if env_url:
        config.roster.url = env_url

    return config
