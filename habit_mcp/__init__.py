"""
Habit MCP - Model Context Protocol server for a Google Drive backed habit tracker.

Signs the user in with Google and keeps a daily habit checklist in a single
JSON file (HabitTracker/data.json) in their Drive.

Features:
- Google sign-in with a stored, refreshable session
- Daily entries with one checkbox per habit
- Monthly completion summaries
- Conflict-checked saves back to Drive

Example:
    from habit_mcp.main import create_app
    mcp, auth, store = create_app()
"""

__version__ = "1.0.0"
__author__ = "Habit MCP Contributors"

# Re-export key types for convenient access
from habit_mcp.types import (
    # Common types
    ErrorResponse,
    SimpleSuccessResponse,

    # Auth types
    AuthStatusResponse,

    # Tracker types
    LoadTrackerResponse,
    HabitAddedResponse,
    EntryResponse,
    ListEntriesResponse,
    MonthlySummaryResponse,
    SaveTrackerResponse,
)

__all__ = [
    # Version info
    "__version__",
    "__author__",

    # Common types
    "ErrorResponse",
    "SimpleSuccessResponse",

    # Auth types
    "AuthStatusResponse",

    # Tracker types
    "LoadTrackerResponse",
    "HabitAddedResponse",
    "EntryResponse",
    "ListEntriesResponse",
    "MonthlySummaryResponse",
    "SaveTrackerResponse",
]
