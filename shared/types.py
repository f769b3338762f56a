"""
Shared type definitions for the habit-mcp project.

This module contains TypedDict definitions for the data that travels between
Google Drive, the tracker and the MCP tools.
"""

from typing import TypedDict, Optional, List, Dict, Any


# =============================================================================
# Drive Types
# =============================================================================

class DriveFile(TypedDict):
    """Represents a file in Google Drive, limited to the fields we request."""
    id: str
    name: str
    mimeType: str
    version: Optional[str]
    modifiedTime: Optional[str]


class DriveFileList(TypedDict):
    """Response body of a files.list call."""
    files: List[DriveFile]


# =============================================================================
# Account Types
# =============================================================================

class UserProfile(TypedDict):
    """The signed-in Google account."""
    name: str
    email: str
    picture: str


# =============================================================================
# Habit Document Types
# =============================================================================

class HabitEntry(TypedDict, total=False):
    """
    One day in the daily tracker.

    Besides the fixed keys, an entry carries one boolean per custom column,
    keyed by the column name.
    """
    id: int
    slNo: int
    date: str   # YYYY-MM-DD
    day: str    # Mon, Tue, ...
    month: str  # January, February, ...
    comment: str


class HabitDocument(TypedDict):
    """The JSON document stored in Drive."""
    dailyTracker: List[HabitEntry]
    monthlyTracker: List[Dict[str, Any]]
    customColumns: List[str]


class HabitStat(TypedDict):
    """Completion statistics for one habit over one month."""
    habit: str
    completed: int
    total: int
    percentage: int

