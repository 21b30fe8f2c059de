"""Opaque user identity used to scope remote calls."""

import logging
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, Field

from src.core.config import settings


logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class Identity(BaseModel):
    """Identity returned by the external identity provider."""

    uid: str = Field(..., description="Provider user id")
    email: str | None = Field(default=None, description="Email address if the provider shares it")


TokenVerifier = Callable[[str], Awaitable[Identity | None]]


def parse_bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX) :].strip()
    return token or None


class IdentityProvider:
    """Holds the current session token and delegates verification."""

    def __init__(self, token: str | None = None, *, verifier: TokenVerifier | None = None) -> None:
        self._token = token
        self._verifier = verifier

    @property
    def verifies_tokens(self) -> bool:
        return self._verifier is not None

    def current_token(self) -> str | None:
        return self._token

    def sign_in(self, token: str) -> None:
        self._token = token

    async def verify(self, token: str | None = None) -> Identity | None:
        """Verify a token (defaults to the current one).

        Returns:
            The identity, or None when unauthenticated or verification fails
        """
        candidate = token if token is not None else self._token
        if not candidate or self._verifier is None:
            return None
        try:
            return await self._verifier(candidate)
        except Exception as e:
            logger.warning("Token verification failed: %s", e)
            return None


# Global identity provider instance
identity_provider = IdentityProvider(settings.api_token)
