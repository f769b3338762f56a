"""
Tests for auth/token_manager.py - Encrypted session storage
"""

import json
import os
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import patch

from conftest import TEST_PROFILE, make_credentials
from habit_mcp.auth.token_manager import TokenManager


class TestPBKDF2KeyDerivation:
    """Tests for PBKDF2 encryption key derivation."""

    def test_key_derivation_with_encryption_key(self, token_config):
        tm = TokenManager(token_config)

        # 32 bytes, base64 encoded
        assert len(tm.encryption_key) == 44
        assert tm.fernet is not None

    def test_missing_key_raises_error(self, token_config):
        token_config["token_encryption_key"] = ""

        with pytest.raises(ValueError, match="TOKEN_ENCRYPTION_KEY"):
            TokenManager(token_config)

    def test_salt_is_reused(self, token_config):
        first = TokenManager(token_config)
        second = TokenManager(token_config)

        assert first.encryption_key == second.encryption_key

    @patch("habit_mcp.auth.token_manager.get_config")
    def test_defaults_to_global_config(self, mock_get_config, token_config):
        mock_get_config.return_value = token_config

        tm = TokenManager()

        assert str(tm.token_path) == token_config["token_storage_path"]


class TestSessionStorage:
    """Tests for storing and loading the session."""

    def test_round_trip(self, token_config):
        tm = TokenManager(token_config)
        credentials = make_credentials()
        credentials.expiry = datetime(2030, 1, 1, 12, 0, 0)

        tm.store_session(credentials, TEST_PROFILE)
        loaded, profile = tm.load_session()

        assert loaded.token == "access-token"
        assert loaded.refresh_token == "refresh-token"
        assert loaded.client_id == credentials.client_id
        assert list(loaded.scopes) == list(credentials.scopes)
        assert loaded.expiry == datetime(2030, 1, 1, 12, 0, 0)
        assert profile == TEST_PROFILE

    def test_file_is_encrypted(self, token_config):
        tm = TokenManager(token_config)

        tm.store_session(make_credentials(), TEST_PROFILE)

        with open(tm.token_path) as f:
            raw = f.read()
        assert "access-token" not in raw
        assert "ada@example.com" not in raw

    def test_file_permissions(self, token_config):
        tm = TokenManager(token_config)

        tm.store_session(make_credentials(), TEST_PROFILE)

        assert os.stat(tm.token_path).st_mode & 0o777 == 0o600

    def test_missing_file_returns_none(self, token_config):
        assert TokenManager(token_config).load_session() is None

    def test_wrong_key_returns_none(self, token_config):
        TokenManager(token_config).store_session(make_credentials(), TEST_PROFILE)
        token_config["token_encryption_key"] = "a_different_key"

        assert TokenManager(token_config).load_session() is None

    def test_expired_session_is_deleted(self, token_config):
        token_config["session_ttl_days"] = 1
        tm = TokenManager(token_config)
        old = datetime.now(timezone.utc) - timedelta(days=2)
        payload = {
            "credentials": {"token": "access-token", "refresh_token": None},
            "profile": TEST_PROFILE,
            "stored_at": old.isoformat(),
        }
        tm.token_path.parent.mkdir(parents=True, exist_ok=True)
        with open(tm.token_path, "w") as f:
            f.write(tm.fernet.encrypt(json.dumps(payload).encode()).decode())

        assert tm.load_session() is None
        assert not tm.session_exists()

    def test_payload_without_credentials_returns_none(self, token_config):
        tm = TokenManager(token_config)
        tm.token_path.parent.mkdir(parents=True, exist_ok=True)
        with open(tm.token_path, "w") as f:
            f.write(tm.fernet.encrypt(b'{"profile": {}}').decode())

        assert tm.load_session() is None

    def test_clear_session(self, token_config):
        tm = TokenManager(token_config)
        tm.store_session(make_credentials(), TEST_PROFILE)

        tm.clear_session()

        assert not tm.session_exists()
        assert tm.load_session() is None

    def test_missing_profile_fields_get_defaults(self, token_config):
        tm = TokenManager(token_config)

        tm.store_session(make_credentials(), {"email": "ada@example.com"})
        _, profile = tm.load_session()

        assert profile == {"name": "User", "email": "ada@example.com", "picture": ""}


class TestOAuthState:
    """Tests for the OAuth state parameter."""

    def test_state_verifies_once(self, token_config):
        tm = TokenManager(token_config)
        tm.store_state("state-123")

        assert tm.verify_state("state-123") is True
        assert tm.verify_state("state-123") is False

    @pytest.mark.parametrize("state", ["other", "", None])
    def test_wrong_state_is_rejected(self, token_config, state):
        tm = TokenManager(token_config)
        tm.store_state("state-123")

        assert tm.verify_state(state) is False

    def test_no_stored_state_rejects_everything(self, token_config):
        assert TokenManager(token_config).verify_state("anything") is False
