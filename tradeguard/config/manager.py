"""Centralized configuration management with schema validation."""
from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Dict, Optional
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from .schemas import Config
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

CONFIG_ENV_VAR = "TRADEGUARD_CONFIG"


class ConfigManager:
    """Centralized configuration manager with Pydantic validation.

    Usage:
        # Defaults
        config = ConfigManager()

        # Or load from YAML
        config = ConfigManager.from_yaml("configs/default.yaml")

        # Access configuration
        max_dd = config.get("risk.max_drawdown")

        # Update configuration
        config.set("risk.max_drawdown", 0.15)
    """

    def __init__(self, config: Optional[Config] = None):
        self._config = config if config is not None else Config()
        self._config_path: Optional[Path] = None

    @classmethod
    def from_yaml(cls, path: str | Path) -> ConfigManager:
        """Load configuration from YAML file with validation.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValidationError: If config doesn't match schema
        """
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f) or {}

        try:
            config = Config(**config_dict)
            LOGGER.info(f"Configuration loaded and validated from {config_path}")
        except ValidationError as e:
            LOGGER.error(f"Configuration validation failed: {e}")
            raise

        manager = cls(config)
        manager._config_path = config_path
        return manager

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> ConfigManager:
        """Load configuration from dictionary with validation."""
        return cls(Config(**config_dict))

    @classmethod
    def from_env(cls, env_file: Optional[str | Path] = None) -> ConfigManager:
        """Load `.env`, then the YAML file named by $TRADEGUARD_CONFIG (defaults otherwise).

        $TRADEGUARD_ALERT_WEBHOOK overrides alerts.webhook_url when set.
        """
        load_dotenv(env_file)
        path = os.getenv(CONFIG_ENV_VAR)
        manager = cls.from_yaml(path) if path else cls()
        webhook = os.getenv("TRADEGUARD_ALERT_WEBHOOK")
        if webhook:
            manager.set("alerts.webhook_url", webhook)
        return manager

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Example:
            >>> config.get("risk.max_leverage")
            5.0
        """
        value: Any = self._config
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            elif hasattr(value, k):
                value = getattr(value, k)
            else:
                return default
        return value

    def get_section(self, section: str) -> Optional[Any]:
        """Get entire configuration section (e.g. "risk")."""
        if hasattr(self._config, section):
            return getattr(self._config, section)
        return None

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Raises:
            ValueError: If key path is invalid
            ValidationError: If value doesn't match schema
        """
        keys = key.split(".")
        obj: Any = self._config
        for k in keys[:-1]:
            if hasattr(obj, k):
                obj = getattr(obj, k)
            else:
                raise ValueError(f"Invalid configuration path: {key}")
        if not hasattr(obj, keys[-1]):
            raise ValueError(f"Invalid configuration path: {key}")
        setattr(obj, keys[-1], value)
        LOGGER.debug(f"Configuration updated: {key} = {value}")

    def to_dict(self) -> Dict[str, Any]:
        return self._config.model_dump()

    def to_yaml(self, path: str | Path) -> None:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        LOGGER.info(f"Configuration saved to {output_path}")

    def reload(self) -> None:
        """Reload configuration from original file.

        Raises:
            RuntimeError: If no config file path is set
        """
        if self._config_path is None:
            raise RuntimeError("Cannot reload: no configuration file path set")
        with open(self._config_path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f) or {}
        self._config = Config(**config_dict)
        LOGGER.info(f"Configuration reloaded from {self._config_path}")

    def merge(self, other: Dict[str, Any] | ConfigManager) -> None:
        """Merge another configuration into this one."""
        other_dict = other.to_dict() if isinstance(other, ConfigManager) else other
        merged = self._deep_merge(self.to_dict(), other_dict)
        self._config = Config(**merged)
        LOGGER.info("Configuration merged")

    @staticmethod
    def _deep_merge(base: Dict, override: Dict) -> Dict:
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigManager._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    @property
    def config(self) -> Config:
        """Raw Pydantic config object."""
        return self._config


_global_config: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """Process-wide configuration, loaded from the environment on first use."""
    global _global_config
    if _global_config is None:
        _global_config = ConfigManager.from_env()
    return _global_config


def set_global_config(config: ConfigManager) -> None:
    global _global_config
    _global_config = config


def reset_global_config() -> None:
    global _global_config
    _global_config = None
