#!/usr/bin/env python3
"""
Configuration access for the matching web application.
"""

import os
from functools import lru_cache

from core.config_loader import AppConfig, load_config


@lru_cache()
def get_config() -> AppConfig:
    """
    Get application configuration with caching.

    Reads the file named by MATCHING_CONFIG (default config.yaml) and applies
    environment variable overrides.

    Returns:
        AppConfig: The application configuration.
    """
    return load_config(os.environ.get("MATCHING_CONFIG", "config.yaml"))
