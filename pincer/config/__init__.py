"""Configuration module for pincer."""

from pincer.config.loader import get_config_path, load_config
from pincer.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path"]
