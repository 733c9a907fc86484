# SPDX-License-Identifier: MIT
"""Configuration management for the offline sync engine."""

import copy
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from .constants import (
    AUTO_SYNC_DELAY_SECONDS,
    CONNECTIVITY_PROBE_INTERVAL_SECONDS,
    DEFAULT_DB_FILENAME,
    PENDING_REFRESH_INTERVAL_SECONDS,
    SNAPSHOT_TTL_HOURS,
)


ENV_PREFIX = "OFFLINE_SYNC_"


class ApiConfig(BaseModel):
    """Configuration for the REST backend."""

    base_url: str = Field(
        "http://localhost:3000/api", description="Base URL of the REST backend"
    )
    request_retries: int = Field(
        0, ge=0, le=10, description="In-request retries for network/5xx failures"
    )
    timeout_seconds: float | None = Field(
        None, gt=0, description="Total request timeout; None keeps transport default"
    )
    headers: dict[str, str] = Field(
        default_factory=dict, description="Extra headers sent with every request"
    )


class SyncConfig(BaseModel):
    """Configuration for sync triggers."""

    auto_sync_delay_seconds: float = Field(
        AUTO_SYNC_DELAY_SECONDS,
        ge=0.0,
        description="Delay before syncing after an offline->online transition",
    )
    pending_refresh_interval_seconds: float = Field(
        PENDING_REFRESH_INTERVAL_SECONDS,
        gt=0.0,
        description="Period of the pending count refresh",
    )


class StorageConfig(BaseModel):
    """Configuration for durable storage."""

    db_path: str = Field(
        str(Path.cwd() / ".offline-sync" / DEFAULT_DB_FILENAME),
        description="SQLite file backing the persistent cache",
    )
    snapshot_ttl_hours: int = Field(
        SNAPSHOT_TTL_HOURS, ge=1, le=8760, description="Query cache snapshot TTL"
    )


class ConnectivityConfig(BaseModel):
    """Configuration for connectivity probing."""

    probe_url: str | None = Field(
        None, description="Health URL polled when the host has no online events"
    )
    probe_interval_seconds: float = Field(
        CONNECTIVITY_PROBE_INTERVAL_SECONDS, gt=0.0, description="Probe period"
    )


class AppConfig(BaseModel):
    """Main application configuration."""

    api: ApiConfig = ApiConfig()
    sync: SyncConfig = SyncConfig()
    storage: StorageConfig = StorageConfig()
    connectivity: ConnectivityConfig = ConnectivityConfig()


class ConfigManager:
    """Manages application configuration from files and environment."""

    def __init__(self, config_path: Path | None = None):
        self.config_path = config_path or self._find_config_file()
        self._config: AppConfig | None = None

    def _find_config_file(self) -> Path | None:
        """Find configuration file in standard locations."""
        search_paths = [
            Path.cwd() / ".offline-sync" / "config.yaml",
            Path.cwd() / "config.yaml",
            Path.home() / ".config" / "offline-sync" / "config.yaml",
        ]

        for path in search_paths:
            if path.exists():
                return path

        return None

    def load_config(self) -> AppConfig:
        """Load configuration from file or create default."""
        if self._config is not None:
            return self._config

        default_config = self.get_default_config()

        if self.config_path and self.config_path.exists():
            with open(self.config_path, encoding="utf-8") as f:
                file_config = yaml.safe_load(f) or {}
            config_data = self._deep_merge_configs(default_config, file_config)
        else:
            config_data = default_config

        config_data = self._apply_env_overrides(config_data)

        self._config = AppConfig(**config_data)
        return self._config

    def _deep_merge_configs(
        self, default_config: dict[str, Any], override_config: dict[str, Any]
    ) -> dict[str, Any]:
        """Merge override config into default config, section by section.

        Args:
            default_config: Base configuration with all defaults
            override_config: User-provided overrides

        Returns:
            Merged configuration

        Example:
            Default: {"sync": {"auto_sync_delay_seconds": 1.5, "pending_refresh_interval_seconds": 30}}
            Override: {"sync": {"auto_sync_delay_seconds": 5}}
            Result: {"sync": {"auto_sync_delay_seconds": 5, "pending_refresh_interval_seconds": 30}}
        """
        result = copy.deepcopy(default_config)

        for key, value in override_config.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key].update(value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config_data: dict[str, Any]) -> dict[str, Any]:
        """Apply environment variable overrides to config."""
        # Example: OFFLINE_SYNC_API_BASE_URL=https://example.org/api
        env_map = {
            "API_BASE_URL": ("api", "base_url"),
            "API_REQUEST_RETRIES": ("api", "request_retries"),
            "DB_PATH": ("storage", "db_path"),
            "PROBE_URL": ("connectivity", "probe_url"),
        }
        for suffix, (section, field) in env_map.items():
            value = os.environ.get(f"{ENV_PREFIX}{suffix}")
            if value is None:
                continue
            config_data.setdefault(section, {})[field] = value

        return config_data

    def get_complete_config_dict(self) -> dict[str, Any]:
        """Get the complete configuration as a dictionary for display."""
        return self.load_config().model_dump()

    def show_config(self) -> str:
        """Show the complete configuration in YAML format.

        Returns:
            YAML formatted configuration string
        """
        return yaml.dump(
            self.get_complete_config_dict(), default_flow_style=False, sort_keys=False
        )

    def get_default_config(self) -> dict[str, Any]:
        """Get default configuration as a plain dictionary."""
        return AppConfig().model_dump()

    def create_default_config(self, output_path: Path) -> None:
        """Write the default configuration to ``output_path``."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.get_default_config(), f, default_flow_style=False, sort_keys=False
            )


# Global config manager instance with factory pattern
_config_manager_instance: ConfigManager | None = None


def get_config_manager(config_path: Path | None = None) -> ConfigManager:
    """Get or create the global config manager instance.

    Args:
        config_path: Optional path to config file (only used on first call)

    Returns:
        The global ConfigManager instance
    """
    global _config_manager_instance
    if _config_manager_instance is None:
        _config_manager_instance = ConfigManager(config_path)
    return _config_manager_instance


def set_config_manager(manager: ConfigManager) -> None:
    """Set the config manager instance (primarily for testing).

    Args:
        manager: ConfigManager instance to use globally
    """
    global _config_manager_instance
    _config_manager_instance = manager


def reset_config_manager() -> None:
    """Reset the config manager instance (primarily for testing)."""
    global _config_manager_instance
    _config_manager_instance = None
