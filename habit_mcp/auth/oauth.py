"""
OAuth Module

This module implements the Google OAuth2 installed-app flow used to sign in,
plus the two plain HTTP calls around it: fetching the user profile and
revoking a token on sign-out.
"""

import os
import webbrowser
from typing import Any, Dict, List, Optional

import httpx
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from habit_mcp.auth.callback_server import BrowserOpener, start_oauth_flow
from habit_mcp.auth.token_manager import TokenManager
from habit_mcp.errors import AuthError, ConsentDeniedError, ProfileDecodeError
from habit_mcp.utils.config import get_config
from habit_mcp.utils.logger import get_logger
from shared.types import UserProfile

logger = get_logger(__name__)

USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
REVOKE_URL = "https://oauth2.googleapis.com/revoke"

BASE_SCOPES = [
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
    "openid",
]


def get_scopes(config: Optional[Dict[str, Any]] = None) -> List[str]:
    """
    Build and return the list of OAuth scopes.

    The Drive scope is limited to files this app creates. Extra scopes from
    the configuration are appended without duplicates.

    Returns:
        List[str]: A new list of OAuth scopes.
    """
    config = config if config is not None else get_config()

    scopes = list(BASE_SCOPES)
    for scope in config.get("extra_scopes", []):
        if scope not in scopes:
            scopes.append(scope)

    return scopes


def build_flow(config: Optional[Dict[str, Any]] = None) -> InstalledAppFlow:
    """
    Create the OAuth flow from the configured client.

    Raises:
        AuthError: If the client id or secret is missing.

    Returns:
        InstalledAppFlow: The flow, with the redirect URI set.
    """
    config = config if config is not None else get_config()

    client_id = config.get("google_client_id")
    client_secret = config.get("google_client_secret")
    redirect_uri = config.get("google_redirect_uri", "http://localhost:8000/auth/callback")

    if not client_id or not client_secret:
        logger.error("Missing Google OAuth credentials")
        raise AuthError(
            "Missing Google OAuth credentials. Please set GOOGLE_CLIENT_ID and "
            "GOOGLE_CLIENT_SECRET environment variables."
        )

    return InstalledAppFlow.from_client_config(
        {
            "installed": {
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uris": [redirect_uri],
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        },
        scopes=get_scopes(config),
        redirect_uri=redirect_uri,
    )


def get_authorization_url(flow: InstalledAppFlow, token_manager: TokenManager) -> str:
    """
    Generate the consent page URL and remember its state parameter.

    Offline access is requested so the session can be refreshed without
    another consent prompt.

    Returns:
        str: The authorization URL.
    """
    auth_url, state = flow.authorization_url(
        access_type="offline",
        include_granted_scopes="true",
        prompt="consent",
    )
    token_manager.store_state(state)
    return auth_url


def exchange_code(
    flow: InstalledAppFlow,
    code: str,
    state: Optional[str],
    token_manager: TokenManager,
) -> Credentials:
    """
    Exchange the authorization code for credentials.

    Args:
        flow (InstalledAppFlow): The flow that produced the authorization URL.
        code (str): The authorization code.
        state (Optional[str]): The state parameter returned by Google.
        token_manager (TokenManager): Holds the expected state.

    Raises:
        AuthError: If the state does not match or the exchange fails.

    Returns:
        Credentials: The OAuth credentials.
    """
    if not token_manager.verify_state(state):
        logger.error("Invalid OAuth state parameter - possible CSRF attack")
        raise AuthError("Invalid state parameter. Sign-in rejected.")

    # Google may grant a superset of the requested scopes (include_granted_scopes)
    os.environ["OAUTHLIB_RELAX_TOKEN_SCOPE"] = "1"
    try:
        flow.fetch_token(code=code)
    except Exception as e:
        # oauthlib raises several unrelated exception types for a failed exchange
        logger.error(f"Failed to exchange authorization code: {e}")
        raise AuthError(f"Failed to complete Google sign-in: {e}") from e

    return flow.credentials


def run_consent_flow(
    token_manager: TokenManager,
    config: Optional[Dict[str, Any]] = None,
    open_browser: BrowserOpener = webbrowser.open,
) -> Credentials:
    """
    Run the full interactive sign-in: open the consent page, wait for the
    redirect and exchange the code.

    Raises:
        BrowserUnavailableError: If no browser could be opened.
        ConsentDeniedError: If the user refused consent or the flow timed out.
        AuthError: For any other sign-in failure.

    Returns:
        Credentials: The new OAuth credentials.
    """
    config = config if config is not None else get_config()

    flow = build_flow(config)
    auth_url = get_authorization_url(flow, token_manager)
    logger.info("Opening Google consent page")

    result = start_oauth_flow(
        auth_url,
        redirect_uri=config.get("google_redirect_uri", "http://localhost:8000/auth/callback"),
        timeout=config.get("oauth_timeout", 300),
        reopen_after=config.get("oauth_reopen_after", 10.0),
        open_browser=open_browser,
    )

    if result.error == "access_denied":
        raise ConsentDeniedError(
            "Google sign-in was cancelled. Access to Google Drive is required to store your habits."
        )
    if result.error:
        raise AuthError(f"Google sign-in failed: {result.error}")
    if not result.code:
        raise AuthError("Google sign-in failed: missing authorization code")

    return exchange_code(flow, result.code, result.state, token_manager)


def fetch_user_profile(credentials: Credentials) -> UserProfile:
    """
    Fetch the signed-in user's name, email and picture.

    Raises:
        ProfileDecodeError: If the request fails or the body is not JSON.

    Returns:
        UserProfile: The profile, with "User" as the fallback name.
    """
    try:
        response = httpx.get(
            USERINFO_URL,
            headers={"Authorization": f"Bearer {credentials.token}"},
            timeout=10.0,
        )
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Failed to fetch user profile: {e}")
        raise ProfileDecodeError(f"Signed in, but the Google profile could not be read: {e}") from e

    return {
        "name": data.get("name") or "User",
        "email": data.get("email") or "",
        "picture": data.get("picture") or "",
    }


def revoke_token(token: str) -> bool:
    """
    Revoke a token at Google.

    Returns:
        bool: True if Google accepted the revocation.
    """
    try:
        response = httpx.post(
            REVOKE_URL,
            params={"token": token},
            headers={"content-type": "application/x-www-form-urlencoded"},
            timeout=10.0,
        )
    except httpx.HTTPError as e:
        logger.warning(f"Failed to revoke token: {e}")
        return False

    if response.status_code != 200:
        logger.warning(f"Token revocation returned HTTP {response.status_code}")
        return False
    return True
