"""
Tracker Tools Module

Load, edit and save the habit document, and report monthly progress.
Edits stay local until save_tracker is called.
"""

from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from habit_mcp.errors import HabitTrackerError
from habit_mcp.mcp.tools.common import error_response
from habit_mcp.tracker.store import HabitStore
from habit_mcp.utils.logger import get_logger

logger = get_logger(__name__)


def _checks(completed: Optional[List[str]], not_completed: Optional[List[str]] = None) -> Dict[str, bool]:
    checks = {name: True for name in completed or []}
    for name in not_completed or []:
        checks[name] = False
    return checks


def setup_tracker_tools(mcp: FastMCP, store: HabitStore) -> None:
    """Set up habit tracker tools on the FastMCP application."""

    @mcp.tool()
    def load_tracker() -> Dict[str, Any]:
        """
        Load the habit tracker from Google Drive, creating the HabitTracker
        folder and data.json on first use. Unsaved local changes are discarded.

        Prerequisites:
        - The user must be signed in. Check auth://status or check_auth_status first.

        Returns:
            Dict[str, Any]: The habits and all daily entries.
        """
        try:
            document = store.load()
            return {
                "success": True,
                "file_id": store.file_id,
                "version": store.version,
                "habits": document["customColumns"],
                "entries": document["dailyTracker"],
            }
        except HabitTrackerError as e:
            logger.error(f"Failed to load tracker: {e.message}")
            return error_response(e)
        except Exception as e:
            logger.error(f"Failed to load tracker: {e}")
            return {"success": False, "error": f"Failed to load tracker: {e}"}

    @mcp.tool()
    def add_habit(name: str) -> Dict[str, Any]:
        """
        Add a habit (a new checkbox column). Existing entries start unchecked.

        Args:
            name: The habit name, e.g. "Read 20 pages".

        Returns:
            Dict[str, Any]: The stored habit name and the full habit list.
        """
        try:
            habit = store.add_habit(name)
            return {
                "success": True,
                "habit": habit,
                "habits": store.document["customColumns"],
                "unsaved_changes": store.dirty,
            }
        except ValueError as e:
            return {"success": False, "error": str(e)}
        except HabitTrackerError as e:
            logger.error(f"Failed to add habit: {e.message}")
            return error_response(e)
        except Exception as e:
            logger.error(f"Failed to add habit: {e}")
            return {"success": False, "error": f"Failed to add habit: {e}"}

    @mcp.tool()
    def add_entry(
        date: Optional[str] = None,
        comment: str = "",
        completed: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Add a day to the daily tracker.

        Args:
            date: The day, e.g. "2026-10-19" or "Oct 19 2026". Defaults to today.
            comment: Free-text note for the day.
            completed: Habits done that day. Every other habit starts unchecked.

        Returns:
            Dict[str, Any]: The new entry, with its id and serial number.
        """
        try:
            entry = store.add_entry(date, comment, _checks(completed))
            return {"success": True, "entry": entry, "unsaved_changes": store.dirty}
        except ValueError as e:
            return {"success": False, "error": str(e)}
        except HabitTrackerError as e:
            logger.error(f"Failed to add entry: {e.message}")
            return error_response(e)
        except Exception as e:
            logger.error(f"Failed to add entry: {e}")
            return {"success": False, "error": f"Failed to add entry: {e}"}

    @mcp.tool()
    def update_entry(
        entry_id: int,
        comment: Optional[str] = None,
        completed: Optional[List[str]] = None,
        not_completed: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Tick or untick habits on an existing day, or change its comment.

        Args:
            entry_id: The entry id returned by add_entry or list_entries.
            comment: New comment. Omit to keep the current one.
            completed: Habits to mark done.
            not_completed: Habits to mark not done.

        Returns:
            Dict[str, Any]: The updated entry.
        """
        try:
            entry = store.update_entry(entry_id, comment, _checks(completed, not_completed))
            return {"success": True, "entry": entry, "unsaved_changes": store.dirty}
        except ValueError as e:
            return {"success": False, "error": str(e)}
        except HabitTrackerError as e:
            logger.error(f"Failed to update entry: {e.message}")
            return error_response(e)
        except Exception as e:
            logger.error(f"Failed to update entry: {e}")
            return {"success": False, "error": f"Failed to update entry: {e}"}

    @mcp.tool()
    def list_entries(month: Optional[str] = None) -> Dict[str, Any]:
        """
        List daily entries.

        Args:
            month: Only entries in this month, e.g. "2026-10", "October" or "10".

        Returns:
            Dict[str, Any]: The matching entries.
        """
        try:
            entries = store.list_entries(month)
            return {"success": True, "count": len(entries), "entries": entries}
        except ValueError as e:
            return {"success": False, "error": str(e)}
        except HabitTrackerError as e:
            logger.error(f"Failed to list entries: {e.message}")
            return error_response(e)
        except Exception as e:
            logger.error(f"Failed to list entries: {e}")
            return {"success": False, "error": f"Failed to list entries: {e}"}

    @mcp.tool()
    def monthly_summary(month: Optional[str] = None) -> Dict[str, Any]:
        """
        Completion per habit for one month: days done out of days in the month.

        Args:
            month: The month, e.g. "2026-10", "October" or "10". Defaults to the current month.

        Returns:
            Dict[str, Any]: Year, month and per-habit completed/total/percentage.
        """
        try:
            summary = store.monthly_summary(month)
            summary["success"] = True
            return summary
        except ValueError as e:
            return {"success": False, "error": str(e)}
        except HabitTrackerError as e:
            logger.error(f"Failed to build monthly summary: {e.message}")
            return error_response(e)
        except Exception as e:
            logger.error(f"Failed to build monthly summary: {e}")
            return {"success": False, "error": f"Failed to build monthly summary: {e}"}

    @mcp.tool()
    def save_tracker(force: bool = False) -> Dict[str, Any]:
        """
        Save the tracker to Google Drive, replacing the whole file.

        The save is refused if the file was changed from another device since
        it was loaded, unless force is True.

        Args:
            force: Overwrite the file even if it changed in Drive.

        Returns:
            Dict[str, Any]: The new file version.
        """
        try:
            version = store.save(force=force)
            return {"success": True, "message": "Tracker saved to Google Drive.", "version": version}
        except HabitTrackerError as e:
            logger.error(f"Failed to save tracker: {e.message}")
            return error_response(e)
        except Exception as e:
            logger.error(f"Failed to save tracker: {e}")
            return {"success": False, "error": f"Failed to save tracker: {e}"}
