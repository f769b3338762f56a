"""
Shared utilities for habit-mcp.

This package contains the document and Drive types used by the tracker,
the Drive gateway and the MCP tools.
"""

from shared.types import (
    DriveFile,
    DriveFileList,
    UserProfile,
    HabitEntry,
    HabitDocument,
    HabitStat,
)

__all__ = [
    "DriveFile",
    "DriveFileList",
    "UserProfile",
    "HabitEntry",
    "HabitDocument",
    "HabitStat",
]
