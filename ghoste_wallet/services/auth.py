"""
Supabase Auth - resolves a user access token to a SessionUser.

The token is validated by Supabase itself (GET /auth/v1/user); nothing is
decoded locally.
"""

import httpx
from pydantic import ValidationError
from structlog import get_logger

from ghoste_wallet.exceptions import AuthenticationError, WalletStoreError
from ghoste_wallet.models.api import AuthUserPayload
from ghoste_wallet.models.domain import SessionUser

logger = get_logger(__name__)


class SupabaseAuthClient:
    """Looks up the user behind a Supabase access token."""

    def __init__(
        self,
        auth_url: str,
        api_key: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.auth_url = auth_url.rstrip("/")
        self.api_key = api_key
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient()
        return self._http_client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def get_user(self, access_token: str) -> SessionUser:
        """
        Resolve an access token.

        Raises:
            AuthenticationError: Token missing, expired or rejected
            WalletStoreError: Supabase Auth unreachable or answered 5xx
        """
        if not access_token:
            raise AuthenticationError("Missing access token")

        try:
            response = await self.http_client.get(
                f"{self.auth_url}/user",
                headers={
                    "apikey": self.api_key,
                    "Authorization": f"Bearer {access_token}",
                },
            )
        except httpx.HTTPError as e:
            logger.error("supabase_auth_unreachable", error=str(e))
            raise WalletStoreError("auth", str(e)) from e

        if response.status_code >= 500:
            raise WalletStoreError("auth", f"HTTP {response.status_code}")
        if response.status_code != 200:
            logger.info("supabase_auth_rejected", status_code=response.status_code)
            raise AuthenticationError("Invalid or expired token")

        try:
            payload = AuthUserPayload.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise AuthenticationError("Malformed user payload") from e

        return SessionUser(user_id=payload.id, email=payload.email)
