"""
Error types raised by the auth layer, the Drive gateway and the tracker.

Every error carries a ``message`` written for the person using the tracker;
MCP tools return it verbatim in their error payloads.
"""

from typing import Optional


class HabitTrackerError(Exception):
    """Base class for all habit tracker errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# =============================================================================
# Authentication
# =============================================================================

class AuthError(HabitTrackerError):
    """Sign-in failed or no usable access token is available."""


class NotAuthenticatedError(AuthError):
    """An operation needs a signed-in user and there is none."""

    def __init__(self, message: str = "User is not authenticated") -> None:
        super().__init__(message)


class ConsentDeniedError(AuthError):
    """The user refused the consent screen or the flow timed out."""


class BrowserUnavailableError(AuthError):
    """The consent page could not be opened in a browser."""


class ProfileDecodeError(AuthError):
    """The user profile could not be fetched or decoded after sign-in."""


# =============================================================================
# Drive
# =============================================================================

class DriveError(HabitTrackerError):
    """A Drive API call failed."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class SessionExpiredError(DriveError):
    """Drive answered 401."""

    def __init__(
        self,
        message: str = "Your session has expired. Please sign out and sign in again.",
    ) -> None:
        super().__init__(message, status=401)


class PermissionDeniedError(DriveError):
    """Drive answered 403."""

    def __init__(
        self,
        message: str = (
            "You do not have permission to access Google Drive. "
            "Please ensure you have granted the necessary permissions."
        ),
    ) -> None:
        super().__init__(message, status=403)


# =============================================================================
# Document
# =============================================================================

class DocumentDecodeError(HabitTrackerError):
    """The tracker file does not contain a valid habit document."""


class DocumentConflictError(HabitTrackerError):
    """The tracker file changed in Drive since it was loaded."""

    def __init__(self, expected_version: str, actual_version: str) -> None:
        super().__init__(
            "The tracker file was changed elsewhere since it was loaded "
            f"(expected version {expected_version}, found {actual_version}). "
            "Reload the tracker or save with force=True to overwrite."
        )
        self.expected_version = expected_version
        self.actual_version = actual_version


class InitializationError(HabitTrackerError):
    """Locating or creating the tracker file failed after all retries."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts
