"""
Configuration Utility Module

This module provides functions for loading and accessing application configuration.
"""

import os
import logging
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List

# Default configuration file path
CONFIG_FILE_PATH = os.getenv("CONFIG_FILE_PATH", "config.yaml")

# Cached configuration
_config_cache: Optional[Dict[str, Any]] = None


def load_yaml_config() -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Returns:
        Dict[str, Any]: Configuration dictionary from YAML file or empty dict if file not found.
    """
    try:
        config_path = Path(CONFIG_FILE_PATH)
        if config_path.exists():
            with open(config_path, "r") as f:
                return yaml.safe_load(f) or {}
        else:
            logging.warning(f"Configuration file not found: {CONFIG_FILE_PATH}")
            return {}
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Error loading configuration file: {e}")
        return {}


def safe_split(value: Optional[str], delimiter: str = ",") -> List[str]:
    """Split a comma separated string, dropping blanks. Lists pass through."""
    if not value:
        return []
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    return [item.strip() for item in value.split(delimiter) if item.strip()]


def get_config() -> Dict[str, Any]:
    """
    Get the application configuration from YAML file and environment variables.
    Environment variables hold the OAuth client secret and the token encryption key
    and take precedence over anything in the YAML file.

    Configuration is cached after first load.

    Returns:
        Dict[str, Any]: A dictionary containing the application configuration.
    """
    global _config_cache
    if _config_cache is not None:
        return _config_cache

    yaml_config = load_yaml_config()

    server_config = yaml_config.get("server", {})
    mcp_config = yaml_config.get("mcp", {})
    google_config = yaml_config.get("google", {})
    tokens_config = yaml_config.get("tokens", {})
    drive_config = yaml_config.get("drive", {})
    tracker_config = yaml_config.get("tracker", {})

    config = {
        # Server configuration
        "host": server_config.get("host", "localhost"),
        "port": int(server_config.get("port", 8000)),
        "debug": str(server_config.get("debug", False)).lower() == "true",
        "log_level": server_config.get("log_level", "INFO"),

        # MCP configuration
        "mcp_server_name": mcp_config.get("name", "Habit Tracker"),

        # Google OAuth configuration
        "google_client_id": os.getenv("GOOGLE_CLIENT_ID", google_config.get("client_id", "")),
        "google_client_secret": os.getenv("GOOGLE_CLIENT_SECRET", ""),
        "google_redirect_uri": os.getenv(
            "GOOGLE_REDIRECT_URI",
            google_config.get("redirect_uri", "http://localhost:8000/auth/callback"),
        ),
        "extra_scopes": safe_split(google_config.get("extra_scopes", "")),
        "oauth_timeout": int(google_config.get("oauth_timeout", 300)),
        "oauth_reopen_after": float(google_config.get("oauth_reopen_after", 10)),

        # Token storage configuration (path from YAML, encryption key from env)
        "token_storage_path": tokens_config.get("storage_path", ""),
        "token_encryption_key": os.getenv("TOKEN_ENCRYPTION_KEY", ""),
        "session_ttl_days": int(tokens_config.get("session_ttl_days", 30)),

        # Drive layout
        "drive_folder_name": drive_config.get("folder_name", "HabitTracker"),
        "drive_file_name": drive_config.get("file_name", "data.json"),

        # Initialization retry policy
        "init_max_attempts": int(tracker_config.get("init_max_attempts", 3)),
        "init_backoff_seconds": float(tracker_config.get("init_backoff_seconds", 1.0)),
    }

    _config_cache = config
    return config


def clear_config_cache() -> None:
    """Forget the cached configuration so the next get_config() reloads it."""
    global _config_cache
    _config_cache = None
