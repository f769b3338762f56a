"""
Drive Gateway Module

This module provides the four Drive operations the habit tracker needs:
find-or-create the folder, find-or-create the data file, read the file and
overwrite the file.
"""

import io
import json
from typing import Any, Callable, Dict, Optional

import httplib2
from google.oauth2.credentials import Credentials
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from habit_mcp.errors import (
    DocumentConflictError,
    DocumentDecodeError,
    DriveError,
    PermissionDeniedError,
    SessionExpiredError,
)
from habit_mcp.tracker.document import new_document
from habit_mcp.utils.logger import get_logger
from habit_mcp.utils.services import get_drive_service
from shared.types import DriveFileList, HabitDocument

logger = get_logger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
JSON_MIME_TYPE = "application/json"

CredentialsProvider = Callable[[], Credentials]


def _quote(value: str) -> str:
    """Escape a value for use inside a single-quoted Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _error_reason(error: HttpError) -> str:
    try:
        payload = json.loads(error.content.decode("utf-8"))
        detail = payload.get("error")
        if isinstance(detail, dict):
            return detail.get("message", "")
        if isinstance(detail, str):
            return detail
    except (ValueError, AttributeError):
        pass
    return error.reason if hasattr(error, "reason") else ""


class DriveGateway:
    """
    Authenticated access to the tracker's folder and file in Google Drive.

    Every call asks the credentials provider for fresh credentials, so a token
    refreshed by the AuthManager is picked up on the next request.
    """

    def __init__(self, credentials_provider: CredentialsProvider) -> None:
        """
        Initialize the gateway.

        Args:
            credentials_provider: Returns credentials with a valid access token.
        """
        self._credentials_provider = credentials_provider

    def _get_service(self) -> Any:
        return get_drive_service(self._credentials_provider())

    def _execute(self, request: Any, action: str) -> Any:
        """
        Execute a Drive request and translate failures.

        Raises:
            SessionExpiredError: On HTTP 401.
            PermissionDeniedError: On HTTP 403.
            DriveError: On any other HTTP or transport failure.
        """
        try:
            return request.execute()
        except HttpError as e:
            status = e.resp.status if e.resp is not None else None
            logger.error(f"Drive API error while trying to {action}: {status} {e}")
            if status == 401:
                raise SessionExpiredError() from e
            if status == 403:
                raise PermissionDeniedError() from e
            reason = _error_reason(e)
            message = f"Google API error: {status}"
            if reason:
                message += f" - {reason}"
            raise DriveError(message, status=status) from e
        except (OSError, httplib2.HttpLib2Error) as e:
            logger.error(f"Network error while trying to {action}: {e}")
            raise DriveError(f"Network error while trying to {action}: {e}") from e

    # =========================================================================
    # Lookup
    # =========================================================================

    def find_or_create_folder(self, name: str) -> str:
        """
        Return the id of the folder called ``name``, creating it if missing.

        Two concurrent callers can both miss the search and create duplicate
        folders; later lookups then use the first result Drive returns.

        Args:
            name: The folder name.

        Returns:
            str: The folder id.
        """
        service = self._get_service()

        query = f"name = '{_quote(name)}' and mimeType = '{FOLDER_MIME_TYPE}' and trashed = false"
        result: DriveFileList = self._execute(
            service.files().list(q=query, spaces="drive", fields="files(id, name)"),
            "search for the tracker folder",
        )
        files = result.get("files", [])
        if files:
            return files[0]["id"]

        logger.info(f"Creating Drive folder '{name}'")
        folder = self._execute(
            service.files().create(
                body={"name": name, "mimeType": FOLDER_MIME_TYPE},
                fields="id",
            ),
            "create the tracker folder",
        )
        return folder["id"]

    def find_or_create_file(
        self,
        parent_id: str,
        name: str,
        initial_document: Optional[HabitDocument] = None,
    ) -> str:
        """
        Return the id of the file ``name`` inside ``parent_id``, creating it
        if missing. A new file is written with ``initial_document`` (the empty
        habit document by default).

        Args:
            parent_id: The folder id.
            name: The file name.
            initial_document: Content for a newly created file.

        Returns:
            str: The file id.
        """
        service = self._get_service()

        query = f"name = '{_quote(name)}' and '{_quote(parent_id)}' in parents and trashed = false"
        result: DriveFileList = self._execute(
            service.files().list(q=query, spaces="drive", fields="files(id, name)"),
            "search for the tracker file",
        )
        files = result.get("files", [])
        if files:
            return files[0]["id"]

        logger.info(f"Creating Drive file '{name}'")
        created = self._execute(
            service.files().create(
                body={"name": name, "mimeType": JSON_MIME_TYPE, "parents": [parent_id]},
                fields="id",
            ),
            "create the tracker file",
        )
        file_id = created["id"]

        self.write_file(file_id, initial_document if initial_document is not None else new_document())
        return file_id

    # =========================================================================
    # Content
    # =========================================================================

    def read_file(self, file_id: str) -> Dict[str, Any]:
        """
        Download and parse the file's JSON content.

        Raises:
            DocumentDecodeError: If the content is not a JSON object.

        Returns:
            Dict[str, Any]: The parsed document. An empty file reads as the
            empty habit document.
        """
        service = self._get_service()
        content = self._execute(service.files().get_media(fileId=file_id), "read the tracker file")

        if isinstance(content, bytes):
            content = content.decode("utf-8")
        if not content or not content.strip():
            return new_document()

        try:
            document = json.loads(content)
        except ValueError as e:
            raise DocumentDecodeError(f"The tracker file is not valid JSON: {e}") from e

        if not isinstance(document, dict):
            raise DocumentDecodeError("The tracker file does not contain a JSON object")
        return document

    def get_file_version(self, file_id: str) -> str:
        """
        Return the file's version, which Drive increases on every change.

        Returns:
            str: The version number as a string.
        """
        service = self._get_service()
        metadata = self._execute(
            service.files().get(fileId=file_id, fields="id, version"),
            "read the tracker file version",
        )
        return str(metadata.get("version", ""))

    def write_file(
        self,
        file_id: str,
        document: Dict[str, Any],
        expected_version: Optional[str] = None,
    ) -> str:
        """
        Overwrite the file with ``document``.

        When ``expected_version`` is given, the write only happens if the file
        is still at that version. The check and the upload are two requests,
        so a write landing between them is not detected.

        Raises:
            DocumentConflictError: If the file moved past ``expected_version``.

        Returns:
            str: The file version after the write.
        """
        service = self._get_service()

        if expected_version is not None:
            current_version = self.get_file_version(file_id)
            if current_version != str(expected_version):
                logger.warning(
                    f"Refusing to overwrite {file_id}: expected version {expected_version}, found {current_version}"
                )
                raise DocumentConflictError(str(expected_version), current_version)

        body = json.dumps(document).encode("utf-8")
        media = MediaIoBaseUpload(io.BytesIO(body), mimetype=JSON_MIME_TYPE, resumable=False)

        result = self._execute(
            service.files().update(fileId=file_id, media_body=media, fields="id, version, modifiedTime"),
            "save the tracker file",
        )
        logger.info(f"Saved tracker file {file_id}")
        return str(result.get("version", ""))
