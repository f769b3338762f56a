"""
MCP Resources for the Habit Tracker server.
"""

from typing import Any, Dict

from mcp.server.fastmcp import FastMCP

from habit_mcp.auth.session import AuthManager
from habit_mcp.tracker.store import HabitStore
from habit_mcp.utils.logger import get_logger

logger = get_logger("habit_mcp.resources")


def setup_resources(mcp: FastMCP, auth: AuthManager, store: HabitStore) -> None:
    """
    Set up all Habit Tracker resources.

    Args:
        mcp: The FastMCP application instance.
        auth: The session owner.
        store: The in-memory habit document.
    """

    @mcp.resource("auth://status")
    def auth_status() -> Dict[str, Any]:
        """
        Get the current authentication status.

        Returns:
            Dict containing authentication status information.
        """
        return auth.status()

    @mcp.resource("tracker://document")
    def tracker_document() -> Dict[str, Any]:
        """
        Get the habit document as currently held in memory.

        Does not contact Drive; call load_tracker first.

        Returns:
            Dict containing the document and its load state.
        """
        status = store.status()
        status["drive"] = store.initializer.status()
        status["document"] = store.document
        return status

    logger.info("Habit Tracker resources registered successfully")
