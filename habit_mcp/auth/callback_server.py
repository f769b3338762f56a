"""
OAuth Callback Server Module

This module runs a short-lived local HTTP server that receives the redirect
from Google's consent page and hands the result back to the sign-in flow.
"""

import http.server
import socketserver
import threading
import webbrowser
import urllib.parse
import socket
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from habit_mcp.errors import BrowserUnavailableError, ConsentDeniedError
from habit_mcp.utils.logger import get_logger

logger = get_logger(__name__)

CALLBACK_PATH = "/auth/callback"

BrowserOpener = Callable[[str], bool]


@dataclass
class CallbackResult:
    """What Google sent back to the redirect URI."""
    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None


class CallbackHTTPServer(socketserver.TCPServer):
    """TCP server that reuses the address and remembers the first callback."""

    allow_reuse_address = True

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.result: Optional[CallbackResult] = None
        self.received = threading.Event()

    def deliver(self, result: CallbackResult) -> None:
        # Only the first redirect counts; a reload of the page is ignored
        if not self.received.is_set():
            self.result = result
            self.received.set()


class OAuthCallbackHandler(http.server.BaseHTTPRequestHandler):
    """
    HTTP request handler for the OAuth redirect.
    """

    def do_GET(self) -> None:
        """Handle GET requests."""
        parsed_url = urllib.parse.urlparse(self.path)

        if parsed_url.path != CALLBACK_PATH:
            self.send_response(404)
            self.send_header("Content-type", "text/html")
            self.end_headers()
            self.wfile.write(b"Not found")
            return

        query_params = urllib.parse.parse_qs(parsed_url.query)
        result = CallbackResult(
            code=query_params.get("code", [None])[0],
            state=query_params.get("state", [None])[0],
            error=query_params.get("error", [None])[0],
        )
        success = bool(result.code) and not result.error

        if success:
            message = "Sign-in complete. You can close this window and return to the habit tracker."
        elif result.error:
            message = f"Google reported an error: {result.error}"
        else:
            message = "The sign-in response was missing the authorization code."

        self.server.deliver(result)  # type: ignore[attr-defined]

        self.send_response(200)
        self.send_header("Content-type", "text/html")
        self.end_headers()

        html_response = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <title>Habit Tracker - Sign in</title>
            <style>
                body {{ font-family: Arial, sans-serif; margin: 40px; line-height: 1.6; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; border: 1px solid #ddd; border-radius: 5px; }}
                h1 {{ color: {'#2196f3' if success else '#F44336'}; }}
            </style>
        </head>
        <body>
            <div class="container">
                <h1>{'Signed in' if success else 'Sign-in failed'}</h1>
                <p>{message}</p>
            </div>
        </body>
        </html>
        """
        self.wfile.write(html_response.encode())

        if success:
            logger.info("OAuth callback received")
        else:
            logger.error(f"OAuth callback failed: {message}")

    def log_message(self, format: str, *args: Any) -> None:
        """Route access logs through our logger."""
        logger.debug(f"{self.client_address[0]} - {format % args}")


class OAuthCallbackServer:
    """
    Background HTTP server that waits for one OAuth redirect.
    """

    def __init__(self, host: str = "localhost", port: int = 8000) -> None:
        """
        Initialize the OAuth callback server.

        Args:
            host (str, optional): The host to bind to. Defaults to "localhost".
            port (int, optional): The preferred port. Defaults to 8000.
        """
        self.host = host
        self.port = self._find_available_port(port)
        self.server: Optional[CallbackHTTPServer] = None
        self.server_thread: Optional[threading.Thread] = None

    def _find_available_port(self, preferred_port: int) -> int:
        """
        Find an available port, starting with the preferred port.

        Args:
            preferred_port (int): The preferred port to use.

        Returns:
            int: An available port.
        """
        port = preferred_port
        max_attempts = 10

        for _ in range(max_attempts):
            try:
                with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                    s.bind((self.host, port))
                    return port
            except OSError:
                logger.warning(f"Port {port} is already in use, trying {port + 1}")
                port += 1

        logger.warning(f"Could not find an available port after {max_attempts} attempts, using {port}")
        return port

    def start(self) -> None:
        """Start serving in a daemon thread."""
        self.server = CallbackHTTPServer((self.host, self.port), OAuthCallbackHandler)
        self.server_thread = threading.Thread(target=self.server.serve_forever)
        self.server_thread.daemon = True
        self.server_thread.start()

        logger.info(f"OAuth callback server started at http://{self.host}:{self.port}{CALLBACK_PATH}")

    def wait(self, timeout: float) -> Optional[CallbackResult]:
        """
        Block until a callback arrives or the timeout passes.

        Returns:
            Optional[CallbackResult]: The callback, or None on timeout.
        """
        if self.server is None:
            return None
        if self.server.received.wait(timeout):
            return self.server.result
        return None

    def stop(self) -> None:
        """Stop the OAuth callback server."""
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
            logger.info("OAuth callback server stopped")


def extract_port_from_redirect_uri(redirect_uri: str) -> int:
    """
    Extract the port from a redirect URI.

    Args:
        redirect_uri (str): The redirect URI.

    Returns:
        int: The port number, or 8000 if not found.
    """
    parsed = urllib.parse.urlparse(redirect_uri)
    return parsed.port or 8000


def start_oauth_flow(
    auth_url: str,
    redirect_uri: str = "http://localhost:8000/auth/callback",
    timeout: float = 300,
    reopen_after: Optional[float] = 10.0,
    open_browser: BrowserOpener = webbrowser.open,
) -> CallbackResult:
    """
    Open the consent page and wait for Google to redirect back.

    If nothing has come back after ``reopen_after`` seconds the consent page is
    opened one more time; there is no further automatic retry.

    Args:
        auth_url (str): The authorization URL to open in the browser.
        redirect_uri (str): The redirect URI registered with Google.
        timeout (float): Maximum time to wait for the callback in seconds.
        reopen_after (Optional[float]): Seconds before re-opening the consent
            page once. None disables the re-open.
        open_browser (BrowserOpener): Function that opens a URL and reports success.

    Returns:
        CallbackResult: The callback parameters.

    Raises:
        BrowserUnavailableError: If the consent page could not be opened.
        ConsentDeniedError: If no callback arrived before the timeout.
    """
    parsed = urllib.parse.urlparse(redirect_uri)
    host = parsed.hostname or "localhost"
    port = extract_port_from_redirect_uri(redirect_uri)

    server = OAuthCallbackServer(host, port)
    if server.port != port:
        logger.warning(
            f"Port {port} from the redirect URI is in use; listening on {server.port}. "
            f"Add http://{host}:{server.port}{CALLBACK_PATH} as an authorized redirect URI "
            "or sign-in will fail with redirect_uri_mismatch."
        )

    server.start()
    try:
        if not open_browser(auth_url):
            raise BrowserUnavailableError(
                "Could not open a browser window for Google sign-in. "
                f"Allow pop-ups or open this URL manually: {auth_url}"
            )

        deadline = time.monotonic() + timeout
        reopened = reopen_after is None

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break

            wait_for = remaining if reopened else min(remaining, reopen_after)
            result = server.wait(wait_for)
            if result is not None:
                return result

            if not reopened:
                logger.warning(f"No sign-in response after {reopen_after} seconds, opening the consent page again")
                open_browser(auth_url)
                reopened = True

        logger.error(f"OAuth sign-in timed out after {timeout} seconds")
        raise ConsentDeniedError(f"Google sign-in timed out after {int(timeout)} seconds. Please try again.")
    finally:
        server.stop()
