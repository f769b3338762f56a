"""
Tests for auth/session.py - Sign-in state, token refresh and sign-out
"""

from datetime import datetime, timedelta, timezone

import pytest
from google.auth.exceptions import RefreshError
from unittest.mock import MagicMock, Mock, patch

from conftest import TEST_PROFILE, make_credentials
from habit_mcp.auth.session import SESSION_EXPIRED_MESSAGE, AuthManager, SessionState
from habit_mcp.auth.token_manager import TokenManager
from habit_mcp.errors import AuthError, ConsentDeniedError, NotAuthenticatedError, ProfileDecodeError


def _expired_credentials(refresh_token="refresh-token"):
    credentials = make_credentials(refresh_token=refresh_token)
    credentials.expiry = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(hours=1)
    return credentials


def _refresh_to(token):
    def refresh(self, request):
        self.token = token
        self.expiry = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(hours=1)
    return refresh


@pytest.fixture
def token_manager(token_config):
    return TokenManager(token_config)


@pytest.fixture
def auth(token_manager):
    return AuthManager(
        token_manager,
        consent_runner=Mock(return_value=make_credentials()),
        profile_fetcher=Mock(return_value=dict(TEST_PROFILE)),
        token_revoker=Mock(return_value=True),
    )


class TestSignIn:
    """Tests for the consent flow and session start."""

    def test_starts_signed_out(self, auth):
        assert auth.state == SessionState.SIGNED_OUT
        assert auth.is_authenticated is False
        assert auth.profile is None

    def test_successful_consent_signs_in(self, auth, token_manager):
        profile = auth.sign_in()

        assert profile == TEST_PROFILE
        assert auth.state == SessionState.SIGNED_IN
        assert auth.profile == TEST_PROFILE
        assert auth.error is None
        assert token_manager.session_exists()

    def test_state_is_awaiting_consent_during_flow(self, token_manager):
        seen = []
        auth = AuthManager(
            token_manager,
            consent_runner=lambda: seen.append(auth.state) or make_credentials(),
            profile_fetcher=Mock(return_value=dict(TEST_PROFILE)),
        )

        auth.sign_in()

        assert seen == [SessionState.AWAITING_CONSENT]

    def test_denied_consent_stays_signed_out(self, token_manager):
        auth = AuthManager(
            token_manager,
            consent_runner=Mock(side_effect=ConsentDeniedError("Google sign-in was cancelled.")),
        )

        with pytest.raises(ConsentDeniedError):
            auth.sign_in()

        assert auth.state == SessionState.SIGNED_OUT
        assert auth.error == "Google sign-in was cancelled."
        assert not token_manager.session_exists()

    def test_os_error_becomes_auth_error(self, token_manager):
        auth = AuthManager(token_manager, consent_runner=Mock(side_effect=OSError("Address already in use")))

        with pytest.raises(AuthError, match="Address already in use"):
            auth.sign_in()

        assert auth.state == SessionState.SIGNED_OUT

    def test_profile_failure_still_signs_in(self, token_manager):
        auth = AuthManager(
            token_manager,
            consent_runner=Mock(return_value=make_credentials()),
            profile_fetcher=Mock(side_effect=ProfileDecodeError("profile unreadable")),
        )

        profile = auth.sign_in()

        assert auth.is_authenticated
        assert profile["name"] == "User"
        assert auth.error == "profile unreadable"


class TestRestore:
    """Tests for restoring a stored session at startup."""

    def test_restores_valid_session(self, auth, token_manager):
        token_manager.store_session(make_credentials(), TEST_PROFILE)

        assert auth.restore() is True
        assert auth.is_authenticated
        assert auth.profile == TEST_PROFILE

    def test_nothing_stored(self, auth):
        assert auth.restore() is False
        assert auth.state == SessionState.SIGNED_OUT

    @patch("habit_mcp.auth.session.GoogleRequest")
    def test_expired_session_is_refreshed(self, mock_request, auth, token_manager):
        token_manager.store_session(_expired_credentials(), TEST_PROFILE)

        with patch.object(type(make_credentials()), "refresh", _refresh_to("new-token")):
            assert auth.restore() is True

        assert auth.get_access_token(interactive=False) == "new-token"
        stored, _ = token_manager.load_session()
        assert stored.token == "new-token"

    def test_expired_without_refresh_token_is_discarded(self, auth, token_manager):
        token_manager.store_session(_expired_credentials(refresh_token=None), TEST_PROFILE)

        assert auth.restore() is False
        assert not token_manager.session_exists()


class TestCredentials:
    """Tests for handing out access tokens."""

    def test_valid_token_is_returned(self, auth):
        auth.sign_in()

        assert auth.get_access_token() == "access-token"

    def test_not_interactive_and_signed_out_raises(self, auth):
        with pytest.raises(NotAuthenticatedError):
            auth.get_credentials(interactive=False)

    def test_interactive_and_signed_out_runs_consent(self, auth):
        credentials = auth.get_credentials()

        assert credentials.token == "access-token"
        assert auth.is_authenticated

    @patch("habit_mcp.auth.session.GoogleRequest")
    def test_expired_token_is_refreshed(self, mock_request, auth):
        auth.sign_in()
        auth.session.credentials.expiry = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(hours=1)

        with patch.object(type(auth.session.credentials), "refresh", _refresh_to("refreshed")):
            assert auth.get_access_token(interactive=False) == "refreshed"

        assert auth.is_authenticated

    @patch("habit_mcp.auth.session.GoogleRequest")
    def test_failed_refresh_signs_out(self, mock_request, auth, token_manager):
        auth.sign_in()
        auth.session.credentials.expiry = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(hours=1)

        with patch.object(type(auth.session.credentials), "refresh", side_effect=RefreshError("invalid_grant")):
            with pytest.raises(NotAuthenticatedError):
                auth.get_credentials(interactive=False)

        assert auth.state == SessionState.SIGNED_OUT
        assert auth.error == SESSION_EXPIRED_MESSAGE
        assert not token_manager.session_exists()

    @patch("habit_mcp.auth.session.clear_service_cache")
    def test_unrefreshable_token_notifies_listeners(self, mock_clear_cache, auth):
        auth.sign_in()
        auth.session.credentials = _expired_credentials(refresh_token=None)
        seen = []
        auth.add_sign_out_listener(lambda: seen.append(auth.state))

        with pytest.raises(NotAuthenticatedError):
            auth.get_credentials(interactive=False)

        assert seen == [SessionState.SIGNED_OUT]
        mock_clear_cache.assert_called_once()

    def test_unrefreshable_token_resets_before_consent(self, auth):
        auth.sign_in()
        auth.session.credentials = _expired_credentials(refresh_token=None)
        order = []
        auth.add_sign_out_listener(lambda: order.append("reset"))
        auth._consent_runner = lambda: order.append("consent") or make_credentials(token="second-token")

        credentials = auth.get_credentials()

        assert order == ["reset", "consent"]
        assert credentials.token == "second-token"
        assert auth.is_authenticated


class TestSignOut:
    """Tests for sign-out and forced sign-out."""

    @patch("habit_mcp.auth.session.clear_service_cache")
    def test_sign_out_clears_everything(self, mock_clear_cache, auth, token_manager):
        auth.sign_in()
        listener = Mock()
        auth.add_sign_out_listener(listener)

        auth.sign_out()

        assert auth.state == SessionState.SIGNED_OUT
        assert auth.profile is None
        assert auth.session.credentials is None
        assert not token_manager.session_exists()
        auth._token_revoker.assert_called_once_with("access-token")
        mock_clear_cache.assert_called_once()
        listener.assert_called_once()

    def test_sign_out_when_signed_out_skips_revoke(self, auth):
        auth.sign_out()

        auth._token_revoker.assert_not_called()

    def test_handle_unauthorized(self, auth, token_manager):
        auth.sign_in()
        listener = Mock()
        auth.add_sign_out_listener(listener)

        auth.handle_unauthorized()

        assert auth.state == SessionState.SIGNED_OUT
        assert auth.error == SESSION_EXPIRED_MESSAGE
        assert not token_manager.session_exists()
        listener.assert_called_once()

    def test_listener_may_read_auth_state(self, auth):
        auth.sign_in()
        seen = []
        auth.add_sign_out_listener(lambda: seen.append(auth.status()["authenticated"]))

        auth.handle_unauthorized()

        assert seen == [False]


class TestStatus:
    """Tests for the status snapshot."""

    def test_signed_in_status(self, auth):
        auth.sign_in()

        status = auth.status()

        assert status["authenticated"] is True
        assert status["state"] == "signed_in"
        assert status["user"] == TEST_PROFILE
        assert status["can_refresh"] is True

    def test_signed_out_status(self, auth):
        status = auth.status()

        assert status == {
            "authenticated": False,
            "state": "signed_out",
            "user": None,
            "error": None,
            "token_expiry": None,
            "can_refresh": False,
        }
