"""Bearer token gate for protected endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from social_mcp.auth.models import Principal, Session
from social_mcp.auth.store import ExpiringStore

logger = logging.getLogger(__name__)

MISSING_TOKEN = "missing_token"
MALFORMED_HEADER = "malformed_header"
INVALID_OR_EXPIRED_TOKEN = "invalid_or_expired_token"

_DESCRIPTIONS = {
    MISSING_TOKEN: "Missing Authorization header",
    MALFORMED_HEADER: "Invalid Authorization header format, expected 'Bearer <token>'",
    INVALID_OR_EXPIRED_TOKEN: "Access token is invalid or expired",
}


class AuthenticationError(Exception):
    """Bearer authentication failed before the request reached dispatch."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        self.description = _DESCRIPTIONS.get(reason, reason)
        super().__init__(self.description)


@dataclass(frozen=True)
class CallContext:
    """Who is calling. Threaded from authentication into tool execution."""

    principal: Principal
    scope: frozenset[str]
    client_id: str


class BearerAuthenticator:
    """Resolves ``Authorization: Bearer <token>`` to a live session.

    Read-only: a successful check never rotates or extends the token.
    """

    def __init__(self, sessions: ExpiringStore[Session]) -> None:
        self.sessions = sessions

    def authenticate(self, authorization_header: str | None) -> CallContext:
        if not authorization_header:
            raise AuthenticationError(MISSING_TOKEN)

        parts = authorization_header.split(" ", 1)
        if len(parts) != 2 or parts[0].lower() != "bearer":
            raise AuthenticationError(MALFORMED_HEADER)
        token = parts[1].strip()
        if not token or len(token.split()) != 1:
            raise AuthenticationError(MALFORMED_HEADER)

        session = self.sessions.get(token)
        if session is None:
            logger.debug("Bearer token not found or expired")
            raise AuthenticationError(INVALID_OR_EXPIRED_TOKEN)

        return CallContext(
            principal=session.principal,
            scope=session.scope,
            client_id=session.client_id,
        )
