"""
Configuration Manager
---------------------
Centralized configuration and secret loading.

Rules:
- Secrets never in code
- Credentials come from environment only, in priority order
- Secret values are never logged
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
import logging
import os

import yaml


@dataclass
class SecretConfig:
    """Configuration for a secret."""
    name: str
    env_var: str
    required: bool = True
    description: str = ""


class SecretManager:
    """
    Loads upstream credentials from the environment.

    Order of REQUIRED_SECRETS is the rotation priority.
    """

    REQUIRED_SECRETS: List[SecretConfig] = [
        SecretConfig("panda_score_token", "PANDA_SCORE_TOKEN",
                     description="Primary PandaScore API token"),
        SecretConfig("panda_score_token_fallback", "PANDA_SCORE_TOKEN_FALLBACK",
                     description="Fallback PandaScore API token"),
    ]

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = os.environ if environ is None else environ
        self._secrets: Dict[str, str] = {}
        self._logger = logging.getLogger("emob.infra.secrets")
        self._load_secrets()

    def _load_secrets(self) -> None:
        """Load secrets from environment."""
        for secret in self.REQUIRED_SECRETS:
            value = self._environ.get(secret.env_var)
            if value:
                self._secrets[secret.name] = value
                self._logger.debug(f"Loaded secret: {secret.name}")
            elif secret.required:
                self._logger.warning(f"Missing required secret: {secret.name}")

    def get(self, name: str) -> Optional[str]:
        """Get a secret by name."""
        return self._secrets.get(name)

    def has(self, name: str) -> bool:
        return name in self._secrets

    def list_available(self) -> List[str]:
        """List names of available secrets (not values!)."""
        return list(self._secrets.keys())

    def ordered_values(self) -> List[str]:
        """Present secret values in priority order."""
        return [
            self._secrets[secret.name]
            for secret in self.REQUIRED_SECRETS
            if secret.name in self._secrets
        ]

    def validate(self) -> Dict[str, bool]:
        """Validate all required secrets are present."""
        return {
            secret.name: self.has(secret.name) or not secret.required
            for secret in self.REQUIRED_SECRETS
        }


class ConfigManager:
    """
    Loads configuration from YAML with environment variable overrides.

    ``get("cache.ttl_seconds")`` checks ``EMOB_CACHE_TTL_SECONDS`` first.
    """

    ENV_PREFIX = "EMOB_"

    def __init__(
        self,
        config_path: str = "config.yaml",
        environ: Optional[Mapping[str, str]] = None,
    ):
        self._config_path = Path(config_path)
        self._environ = os.environ if environ is None else environ
        self._config: Dict[str, Any] = {}
        self._logger = logging.getLogger("emob.infra.config")

        self._load_config()

    def _load_config(self) -> None:
        if self._config_path.exists():
            with open(self._config_path, "r") as f:
                self._config = yaml.safe_load(f) or {}
            self._logger.info(f"Loaded config from {self._config_path}")
        else:
            self._config = {}
            self._logger.warning(f"Config file not found: {self._config_path}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.
        Supports dot notation: 'section.key'
        Environment variables override file config.
        """
        env_key = f"{self.ENV_PREFIX}{key.upper().replace('.', '_')}"
        env_value = self._environ.get(env_key)
        if env_value is not None:
            return env_value

        value: Any = self._config
        for part in key.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value (runtime only, not persisted)."""
        parts = key.split(".")
        config = self._config

        for part in parts[:-1]:
            config = config.setdefault(part, {})

        config[parts[-1]] = value

    def get_section(self, section: str) -> Dict[str, Any]:
        return self._config.get(section, {})

    def reload(self) -> None:
        self._load_config()


@dataclass
class Settings:
    """Typed view over the configuration the resilience layer reads."""
    base_url: str = "https://api.pandascore.co"
    timeout_seconds: float = 10.0
    min_credentials: int = 2
    cache_ttl_seconds: float = 300.0
    cache_max_size: int = 50
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    @classmethod
    def from_config(cls, config: ConfigManager) -> "Settings":
        defaults = cls()
        return cls(
            base_url=str(config.get("upstream.base_url", defaults.base_url)),
            timeout_seconds=float(config.get("upstream.timeout_seconds", defaults.timeout_seconds)),
            min_credentials=int(config.get("upstream.min_credentials", defaults.min_credentials)),
            cache_ttl_seconds=float(config.get("cache.ttl_seconds", defaults.cache_ttl_seconds)),
            cache_max_size=int(config.get("cache.max_size", defaults.cache_max_size)),
            log_level=str(config.get("logging.level", defaults.log_level)).upper(),
            log_dir=config.get("logging.dir", defaults.log_dir),
        )
