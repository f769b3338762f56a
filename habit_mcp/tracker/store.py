"""
Habit Store Module

Holds the loaded habit document in memory. Edits change only the local copy;
nothing reaches Drive until save() is called.
"""

import threading
from typing import Any, Dict, List, Optional

from habit_mcp.drive.gateway import DriveGateway
from habit_mcp.errors import SessionExpiredError
from habit_mcp.tracker import document as doc
from habit_mcp.tracker.initializer import DriveInitializer
from habit_mcp.utils.logger import get_logger
from shared.types import HabitDocument, HabitEntry, HabitStat

logger = get_logger(__name__)


class HabitStore:
    """
    The single in-memory owner of the habit document.

    save() writes with the Drive version seen at load time, so a save after
    the file was changed from another device fails instead of silently
    overwriting it.
    """

    def __init__(self, initializer: DriveInitializer, gateway: DriveGateway) -> None:
        self.initializer = initializer
        self.gateway = gateway
        self._lock = threading.RLock()

        self.document: Optional[HabitDocument] = None
        self.file_id: Optional[str] = None
        self.version: Optional[str] = None
        self.dirty = False

    @property
    def is_loaded(self) -> bool:
        return self.document is not None

    def load(self) -> HabitDocument:
        """
        (Re)load the document from Drive, discarding unsaved local changes.

        Returns:
            HabitDocument: The loaded document.
        """
        with self._lock:
            file_id = self.initializer.initialize()
            try:
                # Read the version first so a write landing in between shows up as a conflict on save
                version = self.gateway.get_file_version(file_id)
                raw = self.gateway.read_file(file_id)
            except SessionExpiredError:
                self.initializer.auth.handle_unauthorized()
                raise
            document = doc.normalize_document(raw)

            self.file_id = file_id
            self.version = version
            self.document = document
            self.dirty = False
            logger.info(
                f"Loaded tracker with {len(document['dailyTracker'])} entries "
                f"and {len(document['customColumns'])} habits"
            )
            return document

    def _require_document(self) -> HabitDocument:
        if self.document is None:
            return self.load()
        return self.document

    # =========================================================================
    # Edits
    # =========================================================================

    def add_habit(self, name: str) -> str:
        """Add a habit column and return its stored name."""
        with self._lock:
            column = doc.add_custom_column(self._require_document(), name)
            self.dirty = True
            return column

    def add_entry(
        self,
        entry_date: Optional[str] = None,
        comment: str = "",
        checks: Optional[Dict[str, bool]] = None,
    ) -> HabitEntry:
        """Append a new day entry."""
        with self._lock:
            document = self._require_document()
            entry = doc.build_entry(document, entry_date, comment, checks)
            document["dailyTracker"].append(entry)
            self.dirty = True
            return entry

    def update_entry(
        self,
        entry_id: int,
        comment: Optional[str] = None,
        checks: Optional[Dict[str, bool]] = None,
    ) -> HabitEntry:
        """Change the comment and/or habit checks of an existing entry."""
        with self._lock:
            entry = doc.update_entry(self._require_document(), entry_id, comment, checks)
            self.dirty = True
            return entry

    # =========================================================================
    # Queries
    # =========================================================================

    def list_entries(self, month: Optional[str] = None) -> List[HabitEntry]:
        """All entries, or only those in ``month`` when given."""
        with self._lock:
            document = self._require_document()
            if month is None:
                return list(document["dailyTracker"])
            year, month_number = doc.parse_month(month)
            return doc.entries_for_month(document, year, month_number)

    def monthly_summary(self, month: Optional[str] = None) -> Dict[str, Any]:
        """Per-habit completion for ``month`` (the current month by default)."""
        with self._lock:
            document = self._require_document()
            year, month_number = doc.parse_month(month)
            stats: List[HabitStat] = doc.monthly_stats(document, year, month_number)
            return {
                "year": year,
                "month": month_number,
                "habits": stats,
            }

    # =========================================================================
    # Persistence
    # =========================================================================

    def save(self, force: bool = False) -> str:
        """
        Write the document back to Drive.

        Args:
            force (bool): Overwrite even if the file changed since it was loaded.

        Raises:
            DocumentConflictError: If the file changed and ``force`` is False.
                The local document is kept and stays dirty.

        Returns:
            str: The new file version.
        """
        with self._lock:
            document = self._require_document()
            doc.renumber_entries(document)
            document["monthlyTracker"] = []

            expected_version = None if force else self.version
            try:
                version = self.gateway.write_file(self.file_id, document, expected_version=expected_version)
            except SessionExpiredError:
                # Signing out drops the local document along with the session
                self.initializer.auth.handle_unauthorized()
                raise
            self.version = version
            self.dirty = False
            return self.version

    def reset(self) -> None:
        """Forget the loaded document, e.g. after sign-out."""
        with self._lock:
            self.document = None
            self.file_id = None
            self.version = None
            self.dirty = False

    def status(self) -> Dict[str, Any]:
        document = self.document
        return {
            "loaded": document is not None,
            "file_id": self.file_id,
            "version": self.version,
            "unsaved_changes": self.dirty,
            "entries": len(document["dailyTracker"]) if document else 0,
            "habits": list(document["customColumns"]) if document else [],
        }
