"""
Token Manager Module

This module persists the signed-in session (OAuth credentials plus the user
profile) in an encrypted file, the local counterpart of a session cookie.
"""

import os
import json
import base64
import secrets
from typing import Any, Dict, Optional, Tuple
from pathlib import Path
from datetime import datetime, timedelta, timezone

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from google.oauth2.credentials import Credentials

from habit_mcp.utils.logger import get_logger
from habit_mcp.utils.config import get_config
from shared.types import UserProfile

logger = get_logger(__name__)

# Salt file name (stored alongside tokens)
SALT_FILE_NAME = "encryption_salt"

DEFAULT_TOKEN_PATH = os.path.join("~", ".habit-mcp", "tokens.json")


class TokenManager:
    """
    Stores the OAuth session encrypted on disk and expires it after a fixed
    number of days.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the TokenManager.

        Args:
            config: Configuration dictionary. Defaults to get_config().
        """
        self.config = config if config is not None else get_config()

        token_path = self.config.get("token_storage_path", "") or DEFAULT_TOKEN_PATH
        self.token_path = Path(os.path.expanduser(token_path))
        self.session_ttl = timedelta(days=int(self.config.get("session_ttl_days", 30)))

        self.encryption_key = self._get_encryption_key()
        self.fernet = Fernet(self.encryption_key)
        self._state: Optional[str] = None

    def _get_or_create_salt(self) -> bytes:
        """
        Get or create a random salt for key derivation.

        The salt is stored in a file alongside the token file.

        Returns:
            bytes: The salt for key derivation.
        """
        salt_path = self.token_path.parent / SALT_FILE_NAME

        if salt_path.exists():
            with open(salt_path, "rb") as f:
                return f.read()

        salt = secrets.token_bytes(16)

        self.token_path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)

        with open(salt_path, "wb") as f:
            f.write(salt)
        salt_path.chmod(0o600)

        logger.info(f"Generated new encryption salt at {salt_path}")
        return salt

    def _get_encryption_key(self) -> bytes:
        """
        Derive the Fernet key from TOKEN_ENCRYPTION_KEY using PBKDF2.

        Raises:
            ValueError: If TOKEN_ENCRYPTION_KEY is not set.

        Returns:
            bytes: The derived encryption key.
        """
        key = self.config.get("token_encryption_key", "")

        if not key:
            raise ValueError(
                "TOKEN_ENCRYPTION_KEY environment variable is required. "
                "Generate one with: python3 -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
            )

        salt = self._get_or_create_salt()

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=100000,
        )
        return base64.urlsafe_b64encode(kdf.derive(key.encode()))

    def store_session(self, credentials: Any, profile: UserProfile) -> None:
        """
        Store the OAuth credentials and the user profile.

        Args:
            credentials (Any): The OAuth credentials. Anything with the
                attributes of google.oauth2.credentials.Credentials works.
            profile (UserProfile): The signed-in user.
        """
        session_data = {
            "credentials": {
                "token": credentials.token,
                "refresh_token": credentials.refresh_token,
                "token_uri": credentials.token_uri,
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
                "scopes": list(credentials.scopes) if credentials.scopes else [],
                "expiry": credentials.expiry.isoformat() if credentials.expiry else None,
            },
            "profile": dict(profile),
            "stored_at": datetime.now(timezone.utc).isoformat(),
        }

        encrypted = self.fernet.encrypt(json.dumps(session_data).encode()).decode()

        self.token_path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)

        with open(self.token_path, "w") as f:
            f.write(encrypted)
        self.token_path.chmod(0o600)

        logger.info(f"Stored session at {self.token_path}")

    def load_session(self) -> Optional[Tuple[Credentials, UserProfile]]:
        """
        Load the stored session.

        A session older than the configured TTL is deleted and treated as absent.

        Returns:
            Optional[Tuple[Credentials, UserProfile]]: The credentials and
            profile, or None if no usable session is stored.
        """
        if not self.token_path.exists():
            logger.debug(f"No session found at {self.token_path}")
            return None

        try:
            with open(self.token_path, "r") as f:
                encrypted = f.read()
            session_data = json.loads(self.fernet.decrypt(encrypted.encode()).decode())
        except (OSError, InvalidToken, ValueError) as e:
            logger.error(f"Failed to read session from {self.token_path}: {e}")
            return None

        if not isinstance(session_data, dict) or "credentials" not in session_data:
            logger.error(f"Session file {self.token_path} has no credentials")
            return None

        stored_at = datetime.fromisoformat(session_data.get("stored_at", "1970-01-01T00:00:00+00:00"))
        if datetime.now(timezone.utc) - stored_at > self.session_ttl:
            logger.info("Stored session is older than the session TTL, discarding it")
            self.clear_session()
            return None

        token_data = session_data["credentials"]
        credentials = Credentials(
            token=token_data["token"],
            refresh_token=token_data.get("refresh_token"),
            token_uri=token_data.get("token_uri"),
            client_id=token_data.get("client_id"),
            client_secret=token_data.get("client_secret"),
            scopes=token_data.get("scopes"),
        )

        if token_data.get("expiry"):
            expiry = datetime.fromisoformat(token_data["expiry"])
            # google-auth compares against naive UTC datetimes
            if expiry.tzinfo is not None:
                expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)
            credentials.expiry = expiry

        stored_profile = session_data.get("profile") or {}
        profile: UserProfile = {
            "name": stored_profile.get("name", "User"),
            "email": stored_profile.get("email", ""),
            "picture": stored_profile.get("picture", ""),
        }

        return credentials, profile

    def clear_session(self) -> None:
        """Delete the stored session."""
        if self.token_path.exists():
            try:
                self.token_path.unlink()
                logger.info(f"Cleared session at {self.token_path}")
            except OSError as e:
                logger.error(f"Failed to clear session at {self.token_path}: {e}")

    def session_exists(self) -> bool:
        """
        Check if a session file exists.

        Returns:
            bool: True if the session file exists, False otherwise.
        """
        return self.token_path.exists()

    def store_state(self, state: str) -> None:
        """
        Store the OAuth state parameter.

        Args:
            state (str): The state parameter.
        """
        self._state = state
        logger.debug("Stored OAuth state parameter")

    def verify_state(self, state: Optional[str]) -> bool:
        """
        Verify the OAuth state parameter. A state can only be verified once.

        Args:
            state (Optional[str]): The state parameter to verify.

        Returns:
            bool: True if the state parameter is valid, False otherwise.
        """
        if not self._state or not state or self._state != state:
            logger.warning("Invalid OAuth state parameter")
            return False

        self._state = None
        logger.debug("Verified OAuth state parameter")
        return True
