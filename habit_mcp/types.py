"""
Habit MCP Type Definitions

This module provides TypedDict definitions for the tool return types.
"""

from typing import TypedDict, List, Optional

from shared.types import HabitEntry, HabitStat, UserProfile


# =============================================================================
# Common Types
# =============================================================================

class ErrorResponse(TypedDict):
    """Standard error response from tools."""
    success: bool
    error: str
    next_steps: List[str]


class SimpleSuccessResponse(TypedDict):
    """Response for operations that only report success."""
    success: bool
    message: str


# =============================================================================
# Auth Types
# =============================================================================

class AuthStatusResponse(TypedDict):
    """Response from check_auth_status and the auth://status resource."""
    authenticated: bool
    state: str
    user: Optional[UserProfile]
    error: Optional[str]
    token_expiry: Optional[str]
    can_refresh: bool
    message: str


# =============================================================================
# Tracker Types
# =============================================================================

class LoadTrackerResponse(TypedDict):
    """Response from load_tracker."""
    success: bool
    file_id: str
    version: str
    habits: List[str]
    entries: List[HabitEntry]


class HabitAddedResponse(TypedDict):
    """Response from add_habit."""
    success: bool
    habit: str
    habits: List[str]
    unsaved_changes: bool


class EntryResponse(TypedDict):
    """Response from add_entry and update_entry."""
    success: bool
    entry: HabitEntry
    unsaved_changes: bool


class ListEntriesResponse(TypedDict):
    """Response from list_entries."""
    success: bool
    count: int
    entries: List[HabitEntry]


class MonthlySummaryResponse(TypedDict):
    """Response from monthly_summary."""
    success: bool
    year: int
    month: int
    habits: List[HabitStat]


class SaveTrackerResponse(TypedDict):
    """Response from save_tracker."""
    success: bool
    message: str
    version: str
