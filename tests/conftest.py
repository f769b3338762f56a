"""
Pytest configuration and fixtures for Habit MCP tests.

IMPORTANT: Patches must target functions WHERE THEY ARE USED (imported), not
where they are defined. The Drive gateway imports get_drive_service at module
level, so patch the import location:

    @patch("habit_mcp.drive.gateway.get_drive_service")

The fake_drive fixture does this and backs the gateway with an in-memory
Drive (FakeDriveService) instead of a MagicMock, so folder/file lookups,
uploads and version bumps behave like the real API.
"""

import json
import re
from typing import Any, Callable, Dict, List, Optional

import httplib2
import pytest
from unittest.mock import Mock, MagicMock, patch
from google.oauth2.credentials import Credentials
from googleapiclient.errors import HttpError

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

TEST_PROFILE = {
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "picture": "https://example.com/ada.png",
}


@pytest.fixture(autouse=True)
def set_test_encryption_key(monkeypatch):
    """
    Set TOKEN_ENCRYPTION_KEY for all tests and reset the config cache.

    This ensures tests don't fail due to missing encryption key.
    """
    monkeypatch.setenv("TOKEN_ENCRYPTION_KEY", "test_encryption_key_for_pytest")

    from habit_mcp.utils.config import clear_config_cache
    clear_config_cache()

    yield

    clear_config_cache()


@pytest.fixture(autouse=True)
def clear_service_cache_fixture():
    """Clear the service cache before each test to prevent test pollution."""
    from habit_mcp.utils.services import clear_service_cache
    clear_service_cache()
    yield
    clear_service_cache()


def make_credentials(token: str = "access-token", refresh_token: Optional[str] = "refresh-token") -> Credentials:
    """Real google-auth credentials that need no network."""
    return Credentials(
        token=token,
        refresh_token=refresh_token,
        token_uri="https://oauth2.googleapis.com/token",
        client_id="client-id.apps.googleusercontent.com",
        client_secret="client-secret",
        scopes=["https://www.googleapis.com/auth/drive.file", "openid"],
    )


def make_http_error(status: int, message: str = "error") -> HttpError:
    """Build the HttpError googleapiclient raises for a failed request."""
    content = json.dumps({"error": {"code": status, "message": message}}).encode("utf-8")
    return HttpError(httplib2.Response({"status": status}), content)


# =============================================================================
# In-memory Drive
# =============================================================================

class FakeRequest:
    """A prepared request; the work happens on execute()."""

    def __init__(self, drive: "FakeDriveService", action: Callable[[], Any]) -> None:
        self._drive = drive
        self._action = action

    def execute(self) -> Any:
        if self._drive.errors:
            raise self._drive.errors.pop(0)
        return self._action()


def _unquote(value: str) -> str:
    return value.replace("\\'", "'").replace("\\\\", "\\")


class FakeFiles:
    """The subset of drive.files() used by the gateway."""

    def __init__(self, drive: "FakeDriveService") -> None:
        self._drive = drive

    def list(self, q: str = "", spaces: Optional[str] = None, fields: Optional[str] = None) -> FakeRequest:
        self._drive.calls.append(("list", q))

        def run() -> Dict[str, Any]:
            name = re.search(r"name = '((?:[^'\\]|\\.)*)'", q)
            mime = re.search(r"mimeType = '([^']*)'", q)
            parent = re.search(r"'((?:[^'\\]|\\.)*)' in parents", q)
            matches = [
                {"id": f["id"], "name": f["name"]}
                for f in self._drive.stored.values()
                if (name is None or f["name"] == _unquote(name.group(1)))
                and (mime is None or f["mimeType"] == mime.group(1))
                and (parent is None or _unquote(parent.group(1)) in f["parents"])
            ]
            return {"files": matches}

        return FakeRequest(self._drive, run)

    def create(self, body: Dict[str, Any], fields: Optional[str] = None) -> FakeRequest:
        self._drive.calls.append(("create", body.get("name")))

        def run() -> Dict[str, Any]:
            file_id = self._drive.add_file(
                body["name"],
                body.get("mimeType", "application/octet-stream"),
                parents=body.get("parents", []),
            )
            return {"id": file_id}

        return FakeRequest(self._drive, run)

    def get(self, fileId: str, fields: Optional[str] = None) -> FakeRequest:
        self._drive.calls.append(("get", fileId))
        return FakeRequest(
            self._drive,
            lambda: {"id": fileId, "version": str(self._drive.stored[fileId]["version"])},
        )

    def get_media(self, fileId: str) -> FakeRequest:
        self._drive.calls.append(("get_media", fileId))
        return FakeRequest(self._drive, lambda: self._drive.stored[fileId]["content"])

    def update(self, fileId: str, media_body: Any = None, fields: Optional[str] = None) -> FakeRequest:
        self._drive.calls.append(("update", fileId))

        def run() -> Dict[str, Any]:
            content = media_body.getbytes(0, media_body.size())
            self._drive.set_content(fileId, content)
            return {
                "id": fileId,
                "version": str(self._drive.stored[fileId]["version"]),
                "modifiedTime": "2026-10-19T12:00:00.000Z",
            }

        return FakeRequest(self._drive, run)


class FakeDriveService:
    """
    In-memory stand-in for the Drive v3 service.

    Queue exceptions on ``errors`` to make the next execute() calls fail.
    """

    def __init__(self) -> None:
        self.stored: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.errors: List[Exception] = []
        self._next_id = 1

    def files(self) -> FakeFiles:
        return FakeFiles(self)

    def add_file(self, name: str, mime_type: str, parents: Optional[List[str]] = None, content: bytes = b"") -> str:
        file_id = f"file{self._next_id}"
        self._next_id += 1
        self.stored[file_id] = {
            "id": file_id,
            "name": name,
            "mimeType": mime_type,
            "parents": list(parents or []),
            "content": content,
            "version": 1,
        }
        return file_id

    def set_content(self, file_id: str, content: bytes) -> None:
        self.stored[file_id]["content"] = content
        self.stored[file_id]["version"] += 1

    def document(self, file_id: str) -> Dict[str, Any]:
        return json.loads(self.stored[file_id]["content"].decode("utf-8"))

    def count(self, action: str) -> int:
        return sum(1 for call in self.calls if call[0] == action)


@pytest.fixture
def fake_drive():
    """An in-memory Drive wired in behind the gateway."""
    drive = FakeDriveService()
    with patch("habit_mcp.drive.gateway.get_drive_service", return_value=drive):
        yield drive


@pytest.fixture
def gateway(fake_drive):
    """A DriveGateway backed by fake_drive."""
    from habit_mcp.drive.gateway import DriveGateway
    return DriveGateway(credentials_provider=lambda: make_credentials())


@pytest.fixture
def mock_auth():
    """A signed-in AuthManager stand-in."""
    auth = MagicMock()
    auth.is_authenticated = True
    auth.get_access_token.return_value = "access-token"
    auth.get_credentials.return_value = make_credentials()
    return auth


@pytest.fixture
def token_config(tmp_path):
    """Configuration pointing token storage at a temp directory."""
    return {
        "token_storage_path": str(tmp_path / "tokens.json"),
        "token_encryption_key": "test_encryption_key_for_pytest",
        "session_ttl_days": 30,
        "google_client_id": "client-id.apps.googleusercontent.com",
        "google_client_secret": "client-secret",
        "google_redirect_uri": "http://localhost:8000/auth/callback",
        "extra_scopes": [],
    }


@pytest.fixture
def mock_credentials():
    """Fixture providing mock credentials."""
    return Mock()
