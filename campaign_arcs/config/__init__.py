"""Configuration loading and schema."""

from campaign_arcs.config.loader import load_config
from campaign_arcs.config.schema import AppConfigRoot, ProgressionConfig, ValidationConfig

__all__ = ["AppConfigRoot", "ProgressionConfig", "ValidationConfig", "load_config"]
