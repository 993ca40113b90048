# Infrastructure module - Configuration, secrets and logging

from .config import ConfigManager, SecretManager, SecretConfig, Settings
from .logging import (
    get_logger, configure_logging, RequestContext,
    get_request_id, generate_request_id,
)

__all__ = [
    # Config
    "ConfigManager",
    "SecretManager",
    "SecretConfig",
    "Settings",
    # Logging
    "get_logger",
    "configure_logging",
    "RequestContext",
    "get_request_id",
    "generate_request_id",
]
