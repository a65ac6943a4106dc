import logging
import os
import wsgiref.simple_server
from urllib.parse import parse_qs

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from mailtriage.config import TriageConfig
from mailtriage.exceptions import AuthError

logger = logging.getLogger(__name__)


def load_credentials(config: TriageConfig) -> Credentials:
    """
    Returns authorized Gmail credentials.

    Reuses the saved token when present, refreshes it when expired, and
    otherwise runs the installed-app consent flow and saves the result.
    """
    creds = None
    token_path = config.gmail_token_path

    if os.path.exists(token_path):
        try:
            creds = Credentials.from_authorized_user_file(token_path, config.gmail_scopes)
        except (ValueError, OSError) as e:
            logger.warning("Error loading token (will re-authenticate): %s", e)
            creds = None

    if creds and creds.valid:
        return creds

    try:
        if creds and creds.expired and creds.refresh_token:
            creds.refresh(Request())
        else:
            if not os.path.exists(config.gmail_credentials_path):
                raise AuthError(
                    f"'{config.gmail_credentials_path}' not found. Download the OAuth 2.0 Client ID "
                    "JSON from Google Cloud Console and save it there."
                )
            flow = InstalledAppFlow.from_client_secrets_file(config.gmail_credentials_path, config.gmail_scopes)
            if config.oauth_headless:
                creds = _authenticate_headless(flow, port=config.oauth_port)
            else:
                creds = flow.run_local_server(port=0)
    except AuthError:
        raise
    except Exception as e:
        raise AuthError(f"Gmail authorization failed: {e}") from e

    _save_token(token_path, creds)
    return creds


def _save_token(token_path: str, creds: Credentials) -> None:
    try:
        directory = os.path.dirname(os.path.abspath(token_path))
        os.makedirs(directory, exist_ok=True)
        with open(token_path, "w") as token:
            token.write(creds.to_json())
    except OSError as e:
        raise AuthError(f"could not save token to {token_path}: {e}") from e


def _authenticate_headless(flow: InstalledAppFlow, port: int = 8080) -> Credentials:
    """
    Consent flow for headless/Docker environments.
    Listens on 0.0.0.0 (for Docker) but tells Google to redirect to localhost.
    """
    flow.redirect_uri = f"http://localhost:{port}/"
    auth_url, _ = flow.authorization_url(prompt="consent")

    logger.warning("Headless authentication required. Open this URL in your browser: %s", auth_url)
    logger.warning("After consenting, the browser redirects to localhost:%d where the worker is listening.", port)

    auth_code = None

    def app(environ, start_response):
        nonlocal auth_code
        code = parse_qs(environ.get("QUERY_STRING", "")).get("code", [None])[0]
        if code:
            auth_code = code
            start_response("200 OK", [("Content-Type", "text/html")])
            return [b"<h1>Authentication Successful!</h1><p>You can close this window.</p>"]
        start_response("404 Not Found", [("Content-Type", "text/plain")])
        return [b"Not Found"]

    server = wsgiref.simple_server.make_server("0.0.0.0", port, app)
    # browsers open speculative connections; don't block on them
    server.socket.settimeout(1.0)
    try:
        while auth_code is None:
            server.handle_request()
    finally:
        server.server_close()

    flow.fetch_token(code=auth_code)
    return flow.credentials
