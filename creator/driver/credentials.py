"""
Credential provider for the managed model path.

Holds the access/refresh token pair, refreshes the access token against
the auth service before a managed session starts, and hands every change
to a persistence callback supplied by the host. The storage format is the
host's business.
"""

import base64
import binascii
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from creator.config import DEFAULT_SERVER_URL
from creator.exceptions import AuthError

logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh"


@dataclass
class Credentials:
    """Access and refresh token pair."""

    access_token: str | None = None
    refresh_token: str | None = None


CredentialsGetter = Callable[[], Credentials | None]
CredentialsSetter = Callable[[Credentials], None]


def _noop_setter(credentials: Credentials) -> None:
    pass


def token_expiry(token: str) -> float | None:
    """
    Read the ``exp`` claim of a JWT without verifying it.

    Returns:
        Expiry as a Unix timestamp, or None for opaque tokens
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (binascii.Error, ValueError):
        return None
    exp = claims.get("exp") if isinstance(claims, dict) else None
    return float(exp) if isinstance(exp, int | float) else None


class CredentialProvider:
    """
    Supplies and refreshes the access token for the managed model.

    Setters replace state immediately; persistence is fire-and-forget
    through the ``set_credentials`` callback.
    """

    def __init__(
        self,
        get_credentials: CredentialsGetter | None = None,
        set_credentials: CredentialsSetter | None = None,
        server_url: str = DEFAULT_SERVER_URL,
        refresh_margin: float = 300.0,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize credential provider.

        Args:
            get_credentials: Loads stored credentials (called once, lazily)
            set_credentials: Persists credentials after every change
            server_url: Base URL of the auth service
            refresh_margin: Refresh tokens expiring within this many seconds
            timeout: HTTP timeout for the refresh call
            transport: Optional httpx transport (tests use MockTransport)
        """
        self._get_credentials = get_credentials
        self._set_credentials = set_credentials or _noop_setter
        self.server_url = server_url.rstrip("/")
        self.refresh_margin = refresh_margin
        self.timeout = timeout
        self._transport = transport
        self._credentials = Credentials()
        self._loaded = get_credentials is None

    def _load(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        try:
            stored = self._get_credentials() if self._get_credentials else None
        except Exception as e:
            logger.warning(f"Could not load stored credentials: {e}")
            return
        if stored:
            self._credentials = Credentials(stored.access_token, stored.refresh_token)

    def _persist(self) -> None:
        snapshot = Credentials(self._credentials.access_token, self._credentials.refresh_token)
        try:
            self._set_credentials(snapshot)
        except Exception as e:
            logger.warning(f"Could not persist credentials: {e}")

    def get_access_token(self) -> str | None:
        self._load()
        return self._credentials.access_token

    def get_refresh_token(self) -> str | None:
        self._load()
        return self._credentials.refresh_token

    def set_access_token(self, value: str | None) -> None:
        self._load()
        self._credentials.access_token = value
        self._persist()

    def set_refresh_token(self, value: str | None) -> None:
        self._load()
        self._credentials.refresh_token = value
        self._persist()

    def needs_refresh(self) -> bool:
        """True when the access token is a JWT that expires within the margin."""
        token = self.get_access_token()
        if not token:
            return False
        expires_at = token_expiry(token)
        if expires_at is None:
            return False
        return expires_at - time.time() <= self.refresh_margin

    async def check_and_update_credentials(self) -> None:
        """
        Refresh the access token if it is about to expire.

        A missing access token is left for the caller to report; a token that
        needs refreshing but cannot be refreshed is an authentication failure.

        Raises:
            AuthError: If the refresh is impossible or rejected
        """
        if not self.needs_refresh():
            return

        refresh_token = self.get_refresh_token()
        if not refresh_token:
            raise AuthError("Access token expired and no refresh token is available")

        logger.info("Access token expiring, refreshing")
        data = await self._request_refresh(refresh_token)

        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise AuthError("Invalid refresh response", {"keys": sorted(data)})

        self._credentials.access_token = access_token
        new_refresh = data.get("refresh_token")
        if isinstance(new_refresh, str) and new_refresh:
            self._credentials.refresh_token = new_refresh
        self._persist()

    async def _request_refresh(self, refresh_token: str) -> dict[str, Any]:
        url = f"{self.server_url}{REFRESH_PATH}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json={"refresh_token": refresh_token})
        except httpx.HTTPError as e:
            raise AuthError(f"Token refresh failed: {e}")

        if response.status_code != 200:
            raise AuthError(
                f"Token refresh failed with HTTP {response.status_code}",
                {"body": response.text[:200]},
            )
        try:
            data = response.json()
        except ValueError:
            raise AuthError("Token refresh returned invalid JSON")
        if not isinstance(data, dict):
            raise AuthError("Token refresh returned an unexpected payload")
        return data
