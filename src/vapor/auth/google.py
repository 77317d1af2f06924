"""Google ID token verification through the tokeninfo endpoint."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from vapor.config import get_settings
from vapor.errors import AuthenticationError, ExternalServiceError

logger = structlog.get_logger()

_ISSUERS = frozenset({"accounts.google.com", "https://accounts.google.com"})


@dataclass(frozen=True)
class GoogleIdentity:
    google_id: str
    email: str
    name: str | None = None


class GoogleTokenVerifier:
    """Asks Google to validate an ID token and checks it was issued for this app."""

    def __init__(
        self,
        client_id: str,
        tokeninfo_url: str = "https://oauth2.googleapis.com/tokeninfo",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client_id = client_id
        self.tokeninfo_url = tokeninfo_url
        self.timeout = timeout
        self.transport = transport

    async def verify(self, id_token: str) -> GoogleIdentity:
        """
        Raises:
            AuthenticationError: Token rejected, issued for another client,
                or without a verified email.
            ExternalServiceError: Google unreachable or failing.
        """
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.get(self.tokeninfo_url, params={"id_token": id_token})
        except httpx.HTTPError as e:
            logger.exception("google_tokeninfo_failed")
            msg = "Google sign-in is unavailable."
            raise ExternalServiceError(msg) from e

        if response.status_code >= 500:
            msg = "Google sign-in is unavailable."
            raise ExternalServiceError(msg)
        if not response.is_success:
            msg = "Invalid Google token"
            raise AuthenticationError(msg)

        claims = response.json()
        if claims.get("aud") != self.client_id or claims.get("iss") not in _ISSUERS:
            logger.warning("google_token_wrong_audience", aud=claims.get("aud"))
            msg = "Invalid Google token"
            raise AuthenticationError(msg)
        # tokeninfo reports booleans as strings
        if not claims.get("sub") or not claims.get("email") or str(claims.get("email_verified")).lower() != "true":
            msg = "Google account has no verified email"
            raise AuthenticationError(msg)
        return GoogleIdentity(google_id=claims["sub"], email=claims["email"], name=claims.get("name"))


_verifier: GoogleTokenVerifier | None = None


def get_google_verifier() -> GoogleTokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        settings = get_settings()
        _verifier = GoogleTokenVerifier(
            client_id=settings.google_client_id,
            tokeninfo_url=settings.google_tokeninfo_url,
            timeout=settings.integration_timeout_seconds,
        )
    return _verifier


def set_google_verifier(verifier: GoogleTokenVerifier | None) -> None:
    global _verifier  # noqa: PLW0603
    _verifier = verifier
