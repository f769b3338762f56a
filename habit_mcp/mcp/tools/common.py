"""
Helpers shared by the MCP tool modules.
"""

from typing import Any, Dict, List

from habit_mcp.errors import (
    AuthError,
    DocumentConflictError,
    DocumentDecodeError,
    HabitTrackerError,
    InitializationError,
    NotAuthenticatedError,
    PermissionDeniedError,
    SessionExpiredError,
)


def next_steps_for(error: HabitTrackerError) -> List[str]:
    """Suggest what the user can do about an error."""
    if isinstance(error, NotAuthenticatedError):
        return ["Call sign_in() and complete the Google consent page in your browser"]
    if isinstance(error, (AuthError, SessionExpiredError)):
        return ["Call sign_out() and then sign_in() to start a new session"]
    if isinstance(error, PermissionDeniedError):
        return [
            "Call sign_out(), then sign_in() again and grant access to Google Drive files",
        ]
    if isinstance(error, DocumentConflictError):
        return [
            "Call load_tracker() to pick up the other changes (unsaved local edits are discarded)",
            "Or call save_tracker(force=True) to overwrite the file in Drive",
        ]
    if isinstance(error, DocumentDecodeError):
        return ["Fix or remove the tracker file in Google Drive, then call load_tracker()"]
    if isinstance(error, InitializationError):
        return ["Call load_tracker() to retry", "Or call sign_out() and sign in again"]
    return ["Retry the operation", "Or call sign_out() and sign in again"]


def error_response(error: HabitTrackerError) -> Dict[str, Any]:
    """Build the error payload returned by tools."""
    return {
        "success": False,
        "error": error.message,
        "next_steps": next_steps_for(error),
    }
