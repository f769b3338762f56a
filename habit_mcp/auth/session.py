"""
Session Module

The AuthManager owns the signed-in session: it restores a stored session,
runs the consent flow, refreshes expired access tokens and signs out. One
instance is created at startup and handed to everything that needs a token.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2.credentials import Credentials

from habit_mcp.auth.oauth import fetch_user_profile, revoke_token, run_consent_flow
from habit_mcp.auth.token_manager import TokenManager
from habit_mcp.errors import AuthError, NotAuthenticatedError, ProfileDecodeError
from habit_mcp.utils.logger import get_logger
from habit_mcp.utils.services import clear_service_cache
from shared.types import UserProfile

logger = get_logger(__name__)

SESSION_EXPIRED_MESSAGE = "Your session has expired. Please sign out and sign in again."

ConsentRunner = Callable[[], Credentials]
ProfileFetcher = Callable[[Credentials], UserProfile]
TokenRevoker = Callable[[str], bool]


class SessionState(str, Enum):
    """Where the session is in the sign-in lifecycle."""
    SIGNED_OUT = "signed_out"
    AWAITING_CONSENT = "awaiting_consent"
    SIGNED_IN = "signed_in"


@dataclass
class Session:
    """The signed-in user and their credentials."""
    state: SessionState = SessionState.SIGNED_OUT
    profile: Optional[UserProfile] = None
    credentials: Optional[Credentials] = None
    error: Optional[str] = None


class AuthManager:
    """
    Tracks sign-in state and hands out access tokens.

    Calls that need a token serialize on one lock. A caller that arrives while
    the consent flow is running waits for it and then uses its result instead
    of starting a second flow.
    """

    def __init__(
        self,
        token_manager: TokenManager,
        consent_runner: Optional[ConsentRunner] = None,
        profile_fetcher: ProfileFetcher = fetch_user_profile,
        token_revoker: TokenRevoker = revoke_token,
        config: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.token_manager = token_manager
        self._consent_runner = consent_runner or (lambda: run_consent_flow(token_manager, config))
        self._profile_fetcher = profile_fetcher
        self._token_revoker = token_revoker
        self._lock = threading.RLock()
        self._sign_out_listeners: List[Callable[[], None]] = []
        self.session = Session()

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def is_authenticated(self) -> bool:
        return self.session.state == SessionState.SIGNED_IN

    @property
    def profile(self) -> Optional[UserProfile]:
        return self.session.profile

    @property
    def error(self) -> Optional[str]:
        return self.session.error

    def add_sign_out_listener(self, listener: Callable[[], None]) -> None:
        """Register a callback run after every sign-out or forced sign-out."""
        self._sign_out_listeners.append(listener)

    def _set_signed_out(self, error: Optional[str] = None) -> None:
        self.session = Session(state=SessionState.SIGNED_OUT, error=error)

    def _set_signed_in(self, credentials: Credentials, profile: UserProfile, error: Optional[str] = None) -> None:
        self.session = Session(
            state=SessionState.SIGNED_IN,
            profile=profile,
            credentials=credentials,
            error=error,
        )

    def _drop_session(self, error: Optional[str] = None) -> None:
        self.token_manager.clear_session()
        clear_service_cache()
        self._set_signed_out(error)

    def _notify_sign_out(self) -> None:
        for listener in self._sign_out_listeners:
            listener()

    # =========================================================================
    # Sign-in
    # =========================================================================

    def restore(self) -> bool:
        """
        Restore a stored session, refreshing its access token if needed.

        Returns:
            bool: True if the session is now signed in.
        """
        with self._lock:
            stored = self.token_manager.load_session()
            if stored is None:
                return False

            credentials, profile = stored
            if not credentials.valid:
                if not (credentials.refresh_token and self._refresh(credentials)):
                    logger.info("Stored session could not be refreshed, discarding it")
                    self.token_manager.clear_session()
                    return False

            self._set_signed_in(credentials, profile)
            logger.info(f"Restored session for {profile.get('email') or profile.get('name')}")
            return True

    def sign_in(self) -> UserProfile:
        """
        Run the interactive consent flow and start a new session.

        If the profile cannot be read the session still starts with a
        placeholder profile and the error is kept for display.

        Raises:
            AuthError: If the consent flow fails. The session is signed out
                and ``error`` holds the message.

        Returns:
            UserProfile: The signed-in user.
        """
        with self._lock:
            self.session = Session(state=SessionState.AWAITING_CONSENT)
            logger.info("Waiting for Google consent")

            try:
                credentials = self._consent_runner()
            except AuthError as e:
                logger.error(f"Sign-in failed: {e.message}")
                self._set_signed_out(e.message)
                raise
            except OSError as e:
                logger.error(f"Sign-in failed: {e}")
                message = f"Could not start Google sign-in: {e}"
                self._set_signed_out(message)
                raise AuthError(message) from e

            profile_error = None
            try:
                profile = self._profile_fetcher(credentials)
            except ProfileDecodeError as e:
                profile = {"name": "User", "email": "", "picture": ""}
                profile_error = e.message

            self.token_manager.store_session(credentials, profile)
            self._set_signed_in(credentials, profile, error=profile_error)
            logger.info(f"Signed in as {profile.get('email') or profile.get('name')}")
            return profile

    # =========================================================================
    # Tokens
    # =========================================================================

    def _refresh(self, credentials: Credentials) -> bool:
        """Refresh credentials in place and persist them. Returns success."""
        try:
            credentials.refresh(GoogleRequest())
        except GoogleAuthError as e:
            logger.warning(f"Failed to refresh access token: {e}")
            return False

        profile = self.session.profile
        if profile is None:
            stored = self.token_manager.load_session()
            profile = stored[1] if stored else {"name": "User", "email": "", "picture": ""}
        self.token_manager.store_session(credentials, profile)
        logger.info("Access token refreshed")
        return True

    def get_credentials(self, interactive: bool = True) -> Credentials:
        """
        Return valid credentials, refreshing or signing in as needed.

        Args:
            interactive (bool): Run the consent flow when no usable token exists.

        Raises:
            NotAuthenticatedError: If not interactive and no usable token exists.
            AuthError: If the consent flow fails.

        Returns:
            Credentials: Credentials with a valid access token.
        """
        expired = False
        with self._lock:
            credentials = self.session.credentials
            if self.is_authenticated and credentials is not None:
                if credentials.valid:
                    return credentials
                if credentials.refresh_token and self._refresh(credentials):
                    return credentials

                logger.info("Access token expired and could not be refreshed")
                self._drop_session(SESSION_EXPIRED_MESSAGE)
                expired = True

        if expired:
            self._notify_sign_out()

        with self._lock:
            # Another caller may have signed in while listeners ran
            if self.is_authenticated and self.session.credentials is not None:
                return self.session.credentials
            if not interactive:
                raise NotAuthenticatedError()

            self.sign_in()
            return self.session.credentials

    def get_access_token(self, interactive: bool = True) -> str:
        """
        Return a valid access token, signing in first if needed.

        Returns:
            str: The bearer token.
        """
        return self.get_credentials(interactive=interactive).token

    def handle_unauthorized(self) -> None:
        """Drop the session after Drive rejected its token with a 401."""
        with self._lock:
            logger.warning("Drive rejected the access token, signing out")
            self._drop_session(SESSION_EXPIRED_MESSAGE)
        self._notify_sign_out()

    # =========================================================================
    # Sign-out
    # =========================================================================

    def sign_out(self) -> None:
        """Revoke the token, forget the session and reset dependent state."""
        with self._lock:
            credentials = self.session.credentials
            if credentials is not None and credentials.token:
                self._token_revoker(credentials.token)

            self._drop_session()
            logger.info("Signed out")
        self._notify_sign_out()

    def status(self) -> Dict[str, Any]:
        """
        Snapshot of the session for tools and resources.

        Returns:
            Dict[str, Any]: State, user, error and token expiry.
        """
        session = self.session
        credentials = session.credentials
        expiry = credentials.expiry.isoformat() if credentials is not None and credentials.expiry else None
        return {
            "authenticated": session.state == SessionState.SIGNED_IN,
            "state": session.state.value,
            "user": dict(session.profile) if session.profile else None,
            "error": session.error,
            "token_expiry": expiry,
            "can_refresh": bool(credentials is not None and credentials.refresh_token),
        }
