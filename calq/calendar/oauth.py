"""Google OAuth2 service for read-only calendar access

Handles the OAuth2 flow for the Google Calendar API:
- Desktop sign-in via InstalledAppFlow: consent page in the browser,
  redirect captured on a fixed loopback port, code exchanged for tokens
- One refresh attempt per call when the stored token is expired

SECURITY:
- Client id/secret and tokens live in the encrypted settings store
- A failed refresh discards the stored tokens; the user must sign in again
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from calq import config
from calq.observability.logging import get_logger
from calq.observability.telemetry import counter, log_event
from calq.storage.app_settings import AppSettingsStore
from calq.storage.models import ProviderCredentials

logger = get_logger(__name__)

SUCCESS_MESSAGE = "Successfully connected! You can close this window and return to CalQ."


class ConfigurationMissingError(Exception):
    """Raised when no OAuth client id/secret has been configured"""


class AuthenticationRequiredError(Exception):
    """Raised when there is no usable token and the user must sign in"""


def _parse_expiry(tokens: dict[str, Any]) -> datetime | None:
    raw = tokens.get("expiry")
    if not raw:
        return None
    expiry = datetime.fromisoformat(raw)
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=UTC)
    return expiry


def token_is_expired(
    tokens: dict[str, Any],
    now: datetime | None = None,
    buffer_seconds: int = config.TOKEN_EXPIRY_BUFFER_SECONDS,
) -> bool:
    """
    Check if a stored token is expired or expiring within buffer_seconds

    Tokens without an expiry are not considered expired.
    """
    expiry = _parse_expiry(tokens)
    if expiry is None:
        return False
    now = now or datetime.now(UTC)
    return expiry <= now + timedelta(seconds=buffer_seconds)


def credentials_to_tokens(credentials: Credentials) -> dict[str, Any]:
    """Serialize the parts of Credentials worth persisting."""
    expiry = credentials.expiry
    if expiry is not None and expiry.tzinfo is None:
        # google-auth keeps expiry as naive UTC
        expiry = expiry.replace(tzinfo=UTC)

    return {
        "token": credentials.token,
        "refresh_token": credentials.refresh_token,
        "token_uri": credentials.token_uri or config.OAUTH_TOKEN_URI,
        "scopes": list(credentials.scopes or config.CALENDAR_SCOPES),
        "expiry": expiry.isoformat() if expiry else None,
    }


def tokens_to_credentials(tokens: dict[str, Any], provider: ProviderCredentials) -> Credentials:
    expiry = _parse_expiry(tokens)
    return Credentials(
        token=tokens.get("token"),
        refresh_token=tokens.get("refresh_token"),
        token_uri=tokens.get("token_uri") or config.OAUTH_TOKEN_URI,
        client_id=provider.client_id,
        client_secret=provider.client_secret,
        scopes=tokens.get("scopes") or config.CALENDAR_SCOPES,
        expiry=expiry.astimezone(UTC).replace(tzinfo=None) if expiry else None,
    )


class GoogleOAuthService:
    """
    Manages Google OAuth2 authentication for the calendar API

    Client credentials are read from the settings store on every call, so
    saving new ones takes effect without rebuilding the service.
    """

    def __init__(
        self,
        settings: AppSettingsStore,
        redirect_uri: str = config.OAUTH_REDIRECT_URI,
        scopes: list[str] | None = None,
    ):
        self.settings = settings
        self.redirect_uri = redirect_uri
        self.scopes = scopes or config.CALENDAR_SCOPES

    def _require_provider(self) -> ProviderCredentials:
        provider = self.settings.get_provider_credentials()
        if provider is None or not provider.is_complete:
            raise ConfigurationMissingError("Google credentials not configured")
        return provider

    def _client_config(self) -> dict[str, Any]:
        provider = self._require_provider()
        return {
            "installed": {
                "client_id": provider.client_id,
                "client_secret": provider.client_secret,
                "auth_uri": config.OAUTH_AUTH_URI,
                "token_uri": config.OAUTH_TOKEN_URI,
                "redirect_uris": [self.redirect_uri],
            }
        }

    def is_configured(self) -> bool:
        return self.settings.get_provider_credentials() is not None

    def is_authenticated(self) -> bool:
        return self.settings.get_tokens() is not None

    def run_local_authorization(self, open_browser: bool = True) -> dict[str, Any]:
        """
        Run the full desktop flow: open the browser, capture the redirect on
        the loopback port, exchange the code and store the tokens

        Blocks until the browser redirect arrives.

        Raises:
            ConfigurationMissingError: If no client id/secret is stored
            AuthenticationRequiredError: If the flow fails
        """
        flow = InstalledAppFlow.from_client_config(self._client_config(), scopes=self.scopes)

        try:
            credentials = flow.run_local_server(
                host=config.OAUTH_REDIRECT_HOST,
                port=config.OAUTH_REDIRECT_PORT,
                open_browser=open_browser,
                success_message=SUCCESS_MESSAGE,
                access_type="offline",
                prompt="consent",
            )
        except Exception as e:
            logger.error("OAuth desktop flow failed: %s", e)
            raise AuthenticationRequiredError(f"Authentication failed: {e}") from e

        tokens = credentials_to_tokens(credentials)
        self.settings.save_tokens(tokens)
        counter("oauth.code_exchanged.count")
        log_event("oauth.desktop_flow_completed", scopes=tokens["scopes"])
        return tokens

    def get_credentials(self, now: datetime | None = None) -> Credentials:
        """
        Credentials ready for an API call, refreshed once if expired

        Raises:
            ConfigurationMissingError: If no client id/secret is stored
            AuthenticationRequiredError: If there are no tokens, or refresh failed
        """
        provider = self._require_provider()
        tokens = self.settings.get_tokens()
        if tokens is None:
            raise AuthenticationRequiredError("Not authenticated")

        credentials = tokens_to_credentials(tokens, provider)
        if token_is_expired(tokens, now=now):
            logger.info("Access token expired or expiring soon, refreshing")
            credentials = self._refresh(credentials)
        return credentials

    def _refresh(self, credentials: Credentials) -> Credentials:
        """
        Side Effects:
            - Calls Google's token endpoint
            - Stores refreshed tokens, or deletes them when refresh fails
        """
        try:
            if not credentials.refresh_token:
                raise GoogleAuthError("No refresh token available")
            credentials.refresh(Request())
        except GoogleAuthError as e:
            logger.warning("Token refresh failed, discarding stored tokens: %s", e)
            self.settings.delete_tokens()
            counter("oauth.token_refresh_failed.count")
            raise AuthenticationRequiredError("Token expired, please re-authenticate") from e

        self.settings.save_tokens(credentials_to_tokens(credentials))
        counter("oauth.token_refreshed.count")
        log_event("oauth.token_refreshed")
        return credentials

    def disconnect(self) -> None:
        """
        Side Effects:
            - Deletes stored tokens (client id/secret are kept)
        """
        self.settings.delete_tokens()
        log_event("oauth.disconnected")
