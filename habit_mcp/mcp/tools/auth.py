"""
Authentication Tools Module

Handles sign-in, sign-out and authentication status checks.
"""

import threading
from typing import Any, Dict

from mcp.server.fastmcp import FastMCP

from habit_mcp.auth.session import AuthManager, SessionState
from habit_mcp.errors import AuthError
from habit_mcp.utils.logger import get_logger

logger = get_logger(__name__)


def _status_message(status: Dict[str, Any]) -> str:
    if status["authenticated"]:
        user = status.get("user") or {}
        return f"Signed in as {user.get('email') or user.get('name', 'User')}."
    if status["state"] == SessionState.AWAITING_CONSENT.value:
        return "Waiting for you to finish the Google consent page in your browser."
    if status.get("error"):
        return f"Not signed in: {status['error']}"
    return "Not signed in. Use the sign_in tool to connect your Google account."


def setup_auth_tools(mcp: FastMCP, auth: AuthManager) -> None:
    """Set up authentication tools on the FastMCP application."""

    def _run_sign_in() -> None:
        try:
            auth.sign_in()
        except AuthError as e:
            # The message is kept on the session for check_auth_status
            logger.error(f"Background sign-in failed: {e.message}")

    @mcp.tool()
    def sign_in() -> Dict[str, Any]:
        """
        Sign in with Google.

        Opens the Google consent page in a browser and waits for it in the
        background. Call check_auth_status afterwards to see the result.

        Returns:
            Dict[str, Any]: Whether the sign-in was started.
        """
        if auth.is_authenticated:
            return {
                "success": True,
                "message": _status_message(auth.status()),
            }
        if auth.state == SessionState.AWAITING_CONSENT:
            return {
                "success": True,
                "message": "Sign-in is already in progress. Finish it in your browser.",
            }

        thread = threading.Thread(target=_run_sign_in, name="habit-sign-in")
        thread.daemon = True
        thread.start()

        return {
            "success": True,
            "message": "Sign-in started. Please complete the Google consent page in your browser.",
        }

    @mcp.tool()
    def sign_out() -> Dict[str, Any]:
        """
        Sign out: revoke the token, forget the stored session and drop the
        loaded tracker, including unsaved changes.

        Returns:
            Dict[str, Any]: A success message.
        """
        was_signed_in = auth.is_authenticated
        auth.sign_out()
        return {
            "success": True,
            "message": "Signed out." if was_signed_in else "No active session to sign out from.",
        }

    @mcp.tool()
    def check_auth_status() -> Dict[str, Any]:
        """
        Check the current authentication status.

        Returns:
            Dict[str, Any]: The session state, signed-in user and last error.
        """
        status = auth.status()
        status["message"] = _status_message(status)
        if not status["authenticated"]:
            status["next_steps"] = ["Call sign_in() to connect your Google account"]
        return status
