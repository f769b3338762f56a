"""
Habit Document Module

Pure functions over the habit document stored in Drive:

    {
        "dailyTracker": [{"id": 1729300000000, "slNo": 1, "date": "2026-10-19",
                          "day": "Mon", "month": "October", "comment": "",
                          "Read": true, "Run": false}],
        "monthlyTracker": [],
        "customColumns": ["Read", "Run"]
    }

Each custom column is a habit; an entry holds one boolean per habit.
"""

import calendar
import copy
import math
import time
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from dateutil import parser

from habit_mcp.errors import DocumentDecodeError
from shared.types import HabitDocument, HabitEntry, HabitStat

RESERVED_KEYS = ("id", "slNo", "date", "day", "month", "comment")

DateLike = Union[str, date, None]


def new_document() -> HabitDocument:
    """Return an empty habit document."""
    return {"dailyTracker": [], "monthlyTracker": [], "customColumns": []}


def normalize_document(raw: Any) -> HabitDocument:
    """
    Validate a document read from Drive and fill in missing keys.

    Args:
        raw: The parsed JSON.

    Raises:
        DocumentDecodeError: If the structure is not a habit document.

    Returns:
        HabitDocument: A deep copy with all three keys present.
    """
    if not isinstance(raw, dict):
        raise DocumentDecodeError("The tracker file does not contain a JSON object")

    document = new_document()
    for key in ("dailyTracker", "monthlyTracker", "customColumns"):
        value = raw.get(key)
        if value is None:
            continue
        if not isinstance(value, list):
            raise DocumentDecodeError(f"'{key}' in the tracker file must be a list")
        document[key] = copy.deepcopy(value)

    for entry in document["dailyTracker"]:
        if not isinstance(entry, dict):
            raise DocumentDecodeError("Every daily tracker entry must be a JSON object")

    columns = []
    for column in document["customColumns"]:
        if not isinstance(column, str):
            raise DocumentDecodeError("Custom column names must be strings")
        if column not in columns:
            columns.append(column)
    document["customColumns"] = columns

    return document


# =============================================================================
# Habits (custom columns)
# =============================================================================

def validate_column_name(document: HabitDocument, name: str) -> str:
    """
    Check a new habit name and return it trimmed.

    Raises:
        ValueError: If the name is blank, already used, or a reserved entry key.
    """
    column = (name or "").strip()
    if not column:
        raise ValueError("Habit name cannot be empty")
    if column in RESERVED_KEYS:
        raise ValueError(f"'{column}' is reserved and cannot be used as a habit name")
    if column in document["customColumns"]:
        raise ValueError(f"Habit '{column}' already exists")
    return column


def add_custom_column(document: HabitDocument, name: str) -> str:
    """
    Add a habit column. Existing entries get ``False`` for it.

    Returns:
        str: The stored (trimmed) column name.
    """
    column = validate_column_name(document, name)
    document["customColumns"].append(column)
    for entry in document["dailyTracker"]:
        entry.setdefault(column, False)
    return column


# =============================================================================
# Entries
# =============================================================================

def parse_entry_date(value: DateLike = None) -> date:
    """
    Parse a user supplied date. ``None`` means today.

    Raises:
        ValueError: If the string cannot be parsed as a date.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parser.parse(value).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid date: {value}") from e


def next_sequence_number(entries: List[HabitEntry]) -> int:
    """
    Return the serial number for a new entry: one past the highest existing
    number, or ``len + 1`` when the existing numbers are unusable.
    """
    if not entries:
        return 1

    numbers = [
        entry["slNo"]
        for entry in entries
        if isinstance(entry.get("slNo"), int) and not isinstance(entry.get("slNo"), bool)
    ]
    if not numbers:
        return 1

    highest = max(numbers)
    return highest + 1 if highest > 0 else len(entries) + 1


def next_entry_id(entries: List[HabitEntry], now_ms: Optional[int] = None) -> int:
    """Millisecond timestamp id, bumped past any existing id it would collide with."""
    candidate = now_ms if now_ms is not None else int(time.time() * 1000)
    existing = [entry["id"] for entry in entries if isinstance(entry.get("id"), int)]
    if existing and candidate <= max(existing):
        candidate = max(existing) + 1
    return candidate


def _apply_checks(document: HabitDocument, entry: HabitEntry, checks: Optional[Dict[str, bool]]) -> None:
    if not checks:
        return
    unknown = [name for name in checks if name not in document["customColumns"]]
    if unknown:
        raise ValueError(f"Unknown habit(s): {', '.join(unknown)}")
    for name, done in checks.items():
        entry[name] = bool(done)


def build_entry(
    document: HabitDocument,
    entry_date: DateLike = None,
    comment: str = "",
    checks: Optional[Dict[str, bool]] = None,
) -> HabitEntry:
    """
    Create a new entry for ``entry_date`` with every habit unchecked except
    those set in ``checks``. The entry is not added to the document.

    Raises:
        ValueError: On an unparseable date or an unknown habit name.
    """
    day = parse_entry_date(entry_date)
    entries = document["dailyTracker"]

    entry: HabitEntry = {
        "id": next_entry_id(entries),
        "slNo": next_sequence_number(entries),
        "date": day.isoformat(),
        "day": day.strftime("%a"),
        "month": day.strftime("%B"),
        "comment": comment or "",
    }
    for column in document["customColumns"]:
        entry[column] = False

    _apply_checks(document, entry, checks)
    return entry


def find_entry(document: HabitDocument, entry_id: int) -> HabitEntry:
    """
    Raises:
        ValueError: If no entry has this id.
    """
    for entry in document["dailyTracker"]:
        if entry.get("id") == entry_id:
            return entry
    raise ValueError(f"No entry with id {entry_id}")


def update_entry(
    document: HabitDocument,
    entry_id: int,
    comment: Optional[str] = None,
    checks: Optional[Dict[str, bool]] = None,
) -> HabitEntry:
    """Change an entry's comment and/or habit checks in place."""
    entry = find_entry(document, entry_id)
    _apply_checks(document, entry, checks)
    if comment is not None:
        entry["comment"] = comment
    return entry


def renumber_entries(document: HabitDocument) -> None:
    """Rewrite serial numbers as 1..n in list order."""
    for number, entry in enumerate(document["dailyTracker"], start=1):
        entry["slNo"] = number


# =============================================================================
# Monthly statistics
# =============================================================================

def parse_month(value: Optional[str] = None) -> Tuple[int, int]:
    """
    Parse "2026-10", "October 2026", "October" or a bare month number such
    as "5" into (year, month). Missing parts default to the current year and
    month.

    Raises:
        ValueError: If the value cannot be parsed.
    """
    today = date.today()
    if value is None or not value.strip():
        return today.year, today.month
    if value.strip().isdigit():
        month = int(value)
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month: {value}")
        return today.year, month
    try:
        parsed = parser.parse(value, default=datetime(today.year, today.month, 1))
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid month: {value}") from e
    return parsed.year, parsed.month


def _entry_in_month(entry: HabitEntry, year: int, month: int) -> bool:
    raw_date = entry.get("date")
    if isinstance(raw_date, str):
        try:
            parsed = date.fromisoformat(raw_date[:10])
            return parsed.year == year and parsed.month == month
        except ValueError:
            pass
    # Entries without an ISO date only carry the month name
    month_name = entry.get("month")
    return isinstance(month_name, str) and month_name.lower() == calendar.month_name[month].lower()


def entries_for_month(document: HabitDocument, year: int, month: int) -> List[HabitEntry]:
    """Return the entries that fall in the given month."""
    return [entry for entry in document["dailyTracker"] if _entry_in_month(entry, year, month)]


def monthly_stats(document: HabitDocument, year: int, month: int) -> List[HabitStat]:
    """
    Per-habit completion for one month.

    ``total`` is the number of days in the month, not the number of entries,
    so days without an entry count as missed.
    """
    total = calendar.monthrange(year, month)[1]
    entries = entries_for_month(document, year, month)

    stats: List[HabitStat] = []
    for column in document["customColumns"]:
        completed = sum(1 for entry in entries if entry.get(column))
        stats.append({
            "habit": column,
            "completed": completed,
            "total": total,
            "percentage": int(math.floor(completed * 100 / total + 0.5)),
        })
    return stats
