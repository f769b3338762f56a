"""
Drive Initializer Module

Locates (or creates) the tracker folder and data file once a token is
available. Transient Drive failures are retried a fixed number of times;
authorization failures are not retried.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional

from habit_mcp.auth.session import AuthManager
from habit_mcp.drive.gateway import DriveGateway
from habit_mcp.errors import (
    AuthError,
    DriveError,
    InitializationError,
    NotAuthenticatedError,
    PermissionDeniedError,
    SessionExpiredError,
)
from habit_mcp.utils.logger import get_logger

logger = get_logger(__name__)


class DriveInitializer:
    """
    Resolves the tracker file id exactly once per session.

    A lock serializes concurrent callers; a caller that waited on the lock
    gets the file id found by the one that held it.
    """

    def __init__(
        self,
        auth: AuthManager,
        gateway: DriveGateway,
        folder_name: str = "HabitTracker",
        file_name: str = "data.json",
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.auth = auth
        self.gateway = gateway
        self.folder_name = folder_name
        self.file_name = file_name
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep
        self._lock = threading.RLock()

        self.folder_id: Optional[str] = None
        self.file_id: Optional[str] = None
        self.attempts = 0
        self.error: Optional[str] = None
        self.is_loading = False

    @property
    def is_initialized(self) -> bool:
        return self.file_id is not None

    def _fail(self, message: str) -> None:
        self.error = message
        logger.error(message)

    def initialize(self) -> str:
        """
        Find or create the tracker folder and file.

        Raises:
            NotAuthenticatedError: If nobody is signed in.
            AuthError: If no access token could be obtained.
            SessionExpiredError: If Drive rejected the token (the session is dropped).
            PermissionDeniedError: If Drive refused access.
            InitializationError: If transient failures outlasted every attempt.

        Returns:
            str: The tracker file id.
        """
        with self._lock:
            if self.file_id is not None:
                return self.file_id

            if not self.auth.is_authenticated:
                self._fail("User is not authenticated")
                raise NotAuthenticatedError()

            self.is_loading = True
            self.error = None
            self.attempts = 0
            try:
                return self._initialize_with_retries()
            finally:
                self.is_loading = False

    def _initialize_with_retries(self) -> str:
        last_error: Optional[DriveError] = None

        while self.attempts < self.max_attempts:
            self.attempts += 1
            logger.info(f"Initializing Google Drive (attempt {self.attempts}/{self.max_attempts})")

            try:
                if not self.auth.get_access_token():
                    raise AuthError(
                        "Failed to get access token. Please ensure you have granted the necessary permissions."
                    )
                folder_id = self.gateway.find_or_create_folder(self.folder_name)
                file_id = self.gateway.find_or_create_file(folder_id, self.file_name)
            except AuthError as e:
                self._fail(e.message)
                raise
            except SessionExpiredError as e:
                # Signing out resets this initializer, so record the error afterwards
                self.auth.handle_unauthorized()
                self._fail(e.message)
                raise
            except PermissionDeniedError as e:
                self._fail(e.message)
                raise
            except DriveError as e:
                last_error = e
                logger.warning(f"Drive initialization attempt {self.attempts} failed: {e.message}")
                if self.attempts < self.max_attempts:
                    self._sleep(self.backoff_seconds * (2 ** (self.attempts - 1)))
                continue

            self.folder_id = folder_id
            self.file_id = file_id
            logger.info("Successfully initialized Google Drive")
            return file_id

        message = f"Failed to access Google Drive: {last_error.message if last_error else 'Unknown error'}"
        self._fail(message)
        raise InitializationError(message, attempts=self.attempts)

    def reset(self) -> None:
        """Forget the resolved ids and counters, e.g. after sign-out."""
        with self._lock:
            self.folder_id = None
            self.file_id = None
            self.attempts = 0
            self.error = None
            self.is_loading = False

    def status(self) -> Dict[str, Any]:
        return {
            "initialized": self.is_initialized,
            "loading": self.is_loading,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "error": self.error,
            "folder_id": self.folder_id,
            "file_id": self.file_id,
        }
