"""Configuration data models."""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

ENV_PREFIX = "IXP_"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class IXPConfig:
    """Centralized configuration for an IXP server instance."""

    # Definition files
    INTENTS_FILE: Optional[str] = None  # {"intents": [...]}
    COMPONENTS_FILE: Optional[str] = None  # {"components": {name: {...}}}

    # Resolution
    DEFAULT_TTL: int = 300  # seconds; 0 = do not cache

    # Crawler content
    CRAWLER_DEFAULT_LIMIT: int = 100
    CRAWLER_MAX_LIMIT: int = 1000

    # Rendering
    # Runtime SDK script for generated pages; empty omits it
    SDK_URL: str = ""
    PAGE_TITLE: str = "IXP Component"
    VALIDATE_RENDER_PROPS: bool = True

    # Security
    ENFORCE_ORIGIN_CHECK: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"

    @classmethod
    def from_dict(cls, config: Dict) -> 'IXPConfig':
        """Create configuration from dictionary."""
        instance = cls()
        for key, value in config.items():
            if hasattr(instance, key):
                setattr(instance, key, value)
        return instance

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'IXPConfig':
        """Create configuration from ``IXP_*`` environment variables.

        Unset or empty variables keep their defaults.

        Raises:
            ValueError: If a numeric variable is not an integer
        """
        environ = os.environ if environ is None else environ
        instance = cls()
        for key, default in instance.to_dict().items():
            raw = environ.get(ENV_PREFIX + key, "").strip()
            if not raw:
                continue
            setattr(instance, key, _convert(key, raw, default))
        return instance

    def to_dict(self) -> Dict:
        """Convert configuration to dictionary."""
        return {
            key: value for key, value in self.__dict__.items()
            if not key.startswith('_')
        }

    def update(self, **kwargs) -> None:
        """Update configuration values."""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                raise ValueError(f"Unknown configuration key: {key}")

    def validate(self) -> List[str]:
        """Validate configuration values and return any errors."""
        errors = []

        if self.DEFAULT_TTL < 0:
            errors.append("DEFAULT_TTL must not be negative")

        if self.CRAWLER_DEFAULT_LIMIT < 1:
            errors.append("CRAWLER_DEFAULT_LIMIT must be positive")

        if self.CRAWLER_MAX_LIMIT < 1:
            errors.append("CRAWLER_MAX_LIMIT must be positive")

        if self.CRAWLER_DEFAULT_LIMIT > self.CRAWLER_MAX_LIMIT:
            errors.append("CRAWLER_DEFAULT_LIMIT cannot exceed CRAWLER_MAX_LIMIT")

        if self.LOG_LEVEL.upper() not in _LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}")

        return errors

    @property
    def log_level(self) -> int:
        return getattr(logging, self.LOG_LEVEL.upper(), logging.INFO)


def _convert(key: str, raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        return raw.lower() in {"1", "true", "yes", "on"}
    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError as exc:
            raise ValueError(f"{ENV_PREFIX}{key} must be an integer, got {raw!r}") from exc
    return raw
