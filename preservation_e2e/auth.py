"""
Bearer-token headers for direct Presentation API calls.

Tokens come from the Microsoft identity platform using the OAuth2
client-credentials grant (no interactive user). A provider instance caches
its token until shortly before expiry; one provider is created per worker
process and never shared across processes.

The Storage API activity endpoints take a time-based one-time password in
an x-activity-api header instead; ActivityTotpAuth supplies it.
"""

import base64
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

import msal
import pyotp

from preservation_e2e.config import Settings, is_localhost
from preservation_e2e.exceptions import AuthenticationError, ConfigurationError
from preservation_e2e.logging_config import get_logger

logger = get_logger(__name__)

AUTHORITY_HOST = "https://login.microsoftonline.com"
DEFAULT_CLIENT_IDENTITY = "Playwright-tests"

ACTIVITY_API_HEADER = "x-activity-api"
ACTIVITY_TOTP_DIGITS = 8
ACTIVITY_TOTP_INTERVAL = 300


class AuthTokenProvider:
    """Acquires and caches an app-only access token."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        tenant_id: str,
        scope: Optional[str] = None,
        client_identity: str = DEFAULT_CLIENT_IDENTITY,
        refresh_margin: float = 300.0,
        clock: Callable[[], float] = time.time,
        app: Optional[msal.ConfidentialClientApplication] = None,
    ):
        if not (client_id and client_secret and tenant_id):
            raise ConfigurationError(
                "API_CLIENT_ID, API_CLIENT_SECRET and API_TENANT_ID must be set for authenticated API calls"
            )
        self.client_id = client_id
        self.tenant_id = tenant_id
        self.scope = scope or f"api://{client_id}/.default"
        self.client_identity = client_identity
        self.refresh_margin = refresh_margin
        self._clock = clock
        self._client_secret = client_secret
        self._app = app
        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthTokenProvider":
        return cls(
            client_id=settings.api_client_id,
            client_secret=settings.api_client_secret,
            tenant_id=settings.api_tenant_id,
            scope=settings.api_scope,
            client_identity=settings.client_identity,
        )

    @property
    def authority(self) -> str:
        return f"{AUTHORITY_HOST}/{self.tenant_id}"

    def _get_app(self) -> msal.ConfidentialClientApplication:
        if self._app is None:
            self._app = msal.ConfidentialClientApplication(
                self.client_id,
                authority=self.authority,
                client_credential=self._client_secret,
            )
        return self._app

    def _is_fresh(self) -> bool:
        return self._token is not None and self._clock() < self._expires_at - self.refresh_margin

    def get_token(self) -> str:
        """Return a cached token, acquiring a new one when missing or near expiry."""
        with self._lock:
            if self._is_fresh():
                return self._token

            result = self._get_app().acquire_token_for_client(scopes=[self.scope])
            if not result or "access_token" not in result:
                error = (result or {}).get("error")
                description = (result or {}).get("error_description")
                logger.error(
                    f"Client credential exchange failed for client {self.client_id}: {error}",
                    extra={"error_type": error},
                )
                raise AuthenticationError(
                    f"Could not acquire API token: {error or 'no token returned'}"
                    + (f" ({description})" if description else ""),
                    error=error,
                    description=description,
                )

            self._token = result["access_token"]
            self._expires_at = self._clock() + float(result.get("expires_in", 3600))
            logger.debug(f"Acquired API token, expires in {result.get('expires_in', 3600)}s")
            return self._token

    def invalidate(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = 0.0

    def get_auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.get_token()}",
            "X-Client-Identity": self.client_identity,
            "Accept": "application/json",
        }


class NoAuth:
    """Header source for a Presentation API running on localhost."""

    def get_auth_headers(self) -> Dict[str, str]:
        return {}

    def invalidate(self) -> None:
        pass


class ActivityTotpAuth:
    """
    One-time password header for the Storage API activity endpoints.

    The service shares a plain ASCII secret rather than a base32 one, so it is
    base32-encoded before being handed to pyotp. Codes are 8 digits and
    change every 5 minutes.
    """

    def __init__(self, secret: str, clock: Callable[[], float] = time.time):
        if not secret:
            raise ConfigurationError("TOTP_SECRET must be set to call the Storage API activity endpoints")
        self._totp = pyotp.TOTP(
            base64.b32encode(secret.encode("ascii")).decode("ascii"),
            digits=ACTIVITY_TOTP_DIGITS,
            interval=ACTIVITY_TOTP_INTERVAL,
        )
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "ActivityTotpAuth":
        return cls(settings.totp_secret)

    def current_code(self) -> str:
        return self._totp.at(datetime.fromtimestamp(self._clock(), tz=timezone.utc))

    def get_auth_headers(self) -> Dict[str, str]:
        return {ACTIVITY_API_HEADER: self.current_code(), "Accept": "application/json"}

    def invalidate(self) -> None:
        pass


def build_auth(settings: Settings):
    """Token provider for the configured API, or NoAuth for a local one."""
    if is_localhost(settings.preservation_api_endpoint):
        logger.info("Presentation API is local, sending requests without a bearer token")
        return NoAuth()
    return AuthTokenProvider.from_settings(settings)
