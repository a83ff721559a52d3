# SPDX-License-Identifier: MIT
"""Configuration management for the sync cache service."""

import copy
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_HOST,
    DEFAULT_LIST_PAGE_SIZE,
    DEFAULT_PORT,
    DEFAULT_SYNC_COOLDOWN_SECONDS,
    DEFAULT_SYNC_INTERVAL_SECONDS,
)


ENV_PREFIX = "SYNC_CACHE_"

# Variables used by existing deployments, mapped to (section, field)
LEGACY_ENV_VARS: dict[str, tuple[str, str]] = {
    "PORT": ("server", "port"),
    "BASE_URL": ("server", "base_url"),
    "PASSWORD": ("server", "password"),
    "AWS_ACCESS_KEY_ID": ("storage", "access_key_id"),
    "AWS_SECRET_ACCESS_KEY": ("storage", "secret_access_key"),
    "AWS_S3_BUCKET": ("storage", "bucket"),
}

SECRET_FIELDS = {"password", "secret_access_key"}


class ServerConfig(BaseModel):
    """Configuration for the HTTP server."""

    host: str = Field(DEFAULT_HOST, description="Interface to listen on")
    port: int = Field(DEFAULT_PORT, ge=1, le=65535, description="Port to listen on")
    base_url: str = Field("", description="Public base URL of this service")
    password: str = Field(
        "", description="Secret for upload and version endpoints (empty disables them)"
    )
    sync_interval_seconds: int = Field(
        DEFAULT_SYNC_INTERVAL_SECONDS,
        ge=0,
        description="Periodic synchronization interval (0 disables it)",
    )
    sync_cooldown_seconds: int = Field(
        DEFAULT_SYNC_COOLDOWN_SECONDS,
        ge=0,
        description="Minimum time between two /synchronize requests",
    )


class StorageConfig(BaseModel):
    """Configuration for the backing object store."""

    backend: Literal["s3", "gcs", "local", "memory"] = Field(
        "s3", description="Object store backend"
    )
    bucket: str = Field("", description="Bucket name (s3, gcs)")
    root_path: Path = Field(
        Path("data"), description="Root directory (local backend)"
    )
    region: str | None = Field(None, description="AWS region")
    endpoint_url: str | None = Field(
        None, description="Custom endpoint for S3-compatible stores"
    )
    access_key_id: str | None = Field(None, description="AWS access key id")
    secret_access_key: str | None = Field(None, description="AWS secret access key")
    page_size: int = Field(
        DEFAULT_LIST_PAGE_SIZE, ge=1, description="Keys per listing request"
    )


class AppConfig(BaseModel):
    """Main application configuration."""

    server: ServerConfig = ServerConfig()
    storage: StorageConfig = StorageConfig()


class ConfigManager:
    """Manages application configuration from files and environment."""

    def __init__(self, config_path: Path | None = None):
        self.config_path = config_path or self._find_config_file()
        self._config: AppConfig | None = None

    def _find_config_file(self) -> Path | None:
        """Find configuration file in standard locations."""
        search_paths = [
            Path.cwd() / ".sync-cache" / "config.yaml",
            Path.cwd() / "config" / "config.yaml",
            Path.cwd() / "config.yaml",
            Path.home() / ".config" / "sync-cache" / "config.yaml",
            Path("/etc/sync-cache/config.yaml"),
        ]

        for path in search_paths:
            if path.exists():
                return path

        return None

    def load_config(self) -> AppConfig:
        """Load configuration from file or create default."""
        if self._config is not None:
            return self._config

        config_data = self.get_default_config()

        if self.config_path and self.config_path.exists():
            with open(self.config_path, encoding="utf-8") as f:
                file_config = yaml.safe_load(f) or {}
            config_data = self._deep_merge_configs(config_data, file_config)

        config_data = self._apply_env_overrides(config_data, os.environ)

        self._config = AppConfig(**config_data)
        return self._config

    def _deep_merge_configs(
        self, default_config: dict[str, Any], override_config: dict[str, Any]
    ) -> dict[str, Any]:
        """Merge override config into default config, one section at a time.

        Example:
            Default: {"server": {"port": 8080, "host": "0.0.0.0"}}
            Override: {"server": {"port": 9000}}
            Result: {"server": {"port": 9000, "host": "0.0.0.0"}}
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

    def _apply_env_overrides(
        self, config_data: dict[str, Any], environ: Mapping[str, str]
    ) -> dict[str, Any]:
        """Apply environment variable overrides to config.

        Legacy deployment variables (PORT, AWS_S3_BUCKET, ...) are applied
        first so that SYNC_CACHE_<SECTION>_<FIELD> variables win over them.
        """
        for env_name, (section, field_name) in LEGACY_ENV_VARS.items():
            value = environ.get(env_name)
            if value:
                config_data.setdefault(section, {})[field_name] = value

        for key, value in environ.items():
            if not key.startswith(ENV_PREFIX):
                continue
            section, _, field_name = key[len(ENV_PREFIX) :].lower().partition("_")
            if section in AppConfig.model_fields and field_name:
                config_data.setdefault(section, {})[field_name] = value

        return config_data

    def get_complete_config_dict(self, mask_secrets: bool = True) -> dict[str, Any]:
        """Get the complete configuration as a dictionary for display."""
        config = self.load_config()
        config_dict = config.model_dump(mode="json")
        if mask_secrets:
            for section in config_dict.values():
                for name in SECRET_FIELDS & section.keys():
                    if section[name]:
                        section[name] = "********"
        return config_dict

    def show_config(self) -> str:
        """Show the complete configuration in YAML format, secrets masked.

        Returns:
            YAML formatted configuration string
        """
        config_dict = self.get_complete_config_dict()
        return yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    def get_default_config(self) -> dict[str, Any]:
        """Get default configuration as a plain dictionary."""
        return AppConfig().model_dump()


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
