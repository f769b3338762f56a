"""
Service Caching Module

This module provides a cached Drive service instance to avoid recreating the
discovery client on every API call.
"""

import threading
from typing import Optional
from googleapiclient.discovery import build, Resource
from google.oauth2.credentials import Credentials

from habit_mcp.utils.logger import get_logger

logger = get_logger(__name__)

# Thread lock for cache access
_cache_lock = threading.Lock()

# Cached service instance
_drive_service: Optional[Resource] = None
_credentials_hash: Optional[int] = None


def _get_credentials_hash(credentials: Credentials) -> int:
    """
    Get a hash of the credentials token for cache invalidation.

    Args:
        credentials: The Google OAuth credentials.

    Returns:
        int: A hash of the credentials token.
    """
    return hash((credentials.token, credentials.refresh_token))


def get_drive_service(credentials: Credentials) -> Resource:
    """
    Get a cached Drive v3 service instance.

    A refreshed or different token produces a new service.

    Args:
        credentials: The Google OAuth credentials.

    Returns:
        Resource: The Drive API service instance.
    """
    global _drive_service, _credentials_hash

    with _cache_lock:
        cred_hash = _get_credentials_hash(credentials)
        if _drive_service is None or _credentials_hash != cred_hash:
            logger.debug("Creating new Drive service instance")
            _drive_service = build("drive", "v3", credentials=credentials, cache_discovery=False)
            _credentials_hash = cred_hash

        return _drive_service


def clear_service_cache() -> None:
    """
    Clear the cached service instance.

    This should be called when signing out or when credentials are invalidated.
    """
    global _drive_service, _credentials_hash

    with _cache_lock:
        _drive_service = None
        _credentials_hash = None
        logger.debug("Cleared service cache")
