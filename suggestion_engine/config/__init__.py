"""Configuration module - exports Settings and load_config."""

from suggestion_engine.config.loader import load_config
from suggestion_engine.config.settings import Settings

__all__ = ["Settings", "load_config"]
