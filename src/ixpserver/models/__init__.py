"""Configuration data models."""

from ixpserver.models.config_models import IXPConfig

__all__ = ["IXPConfig"]
