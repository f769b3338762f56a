"""
MCP Tools Package

This package contains modular tool definitions for the Habit Tracker MCP server.

Tools are organized into the following modules:
- auth: Authentication (sign_in, sign_out, check_auth_status)
- tracker: Habit document (load_tracker, add_habit, add_entry, update_entry,
  list_entries, monthly_summary, save_tracker)
"""

from mcp.server.fastmcp import FastMCP

from habit_mcp.auth.session import AuthManager
from habit_mcp.mcp.tools.auth import setup_auth_tools
from habit_mcp.mcp.tools.tracker import setup_tracker_tools
from habit_mcp.tracker.store import HabitStore


def setup_tools(mcp: FastMCP, auth: AuthManager, store: HabitStore) -> None:
    """
    Set up all MCP tools on the FastMCP application.

    Args:
        mcp (FastMCP): The FastMCP application.
        auth (AuthManager): The session owner shared by all tools.
        store (HabitStore): The in-memory habit document.
    """
    setup_auth_tools(mcp, auth)
    setup_tracker_tools(mcp, store)


__all__ = [
    "setup_tools",
    "setup_auth_tools",
    "setup_tracker_tools",
]
