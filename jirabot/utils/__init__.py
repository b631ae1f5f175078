"""
Utilities Module
================

Common utilities shared across the application:
- logger: Context-aware logging
- config: Centralized configuration
"""

from jirabot.utils.logger import Logger
from jirabot.utils.config import get_config, Config

__all__ = ["Logger", "get_config", "Config"]
