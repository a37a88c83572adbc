"""Configuration management and settings."""

from watch_rebuild.config.settings import LogLevel, WatchConfig, get_config, reload_config, set_config

__all__ = ["WatchConfig", "LogLevel", "get_config", "reload_config", "set_config"]
