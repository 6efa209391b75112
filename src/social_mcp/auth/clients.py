"""Dynamic client registration (RFC 7591) bookkeeping."""

from __future__ import annotations

import hmac
import logging
import secrets
import threading

from social_mcp.auth.models import OAuthError, RegisteredClient

logger = logging.getLogger(__name__)

AUTH_METHODS = ("none", "client_secret_post")


class ClientRegistry:
    """Registered clients for the lifetime of the process."""

    def __init__(self) -> None:
        self._clients: dict[str, RegisteredClient] = {}
        self._lock = threading.Lock()

    def register(
        self,
        client_name: str = "unknown",
        redirect_uris: list[str] | None = None,
        token_endpoint_auth_method: str = "none",
    ) -> RegisteredClient:
        if token_endpoint_auth_method not in AUTH_METHODS:
            raise OAuthError(
                "invalid_client_metadata",
                f"Unsupported token_endpoint_auth_method: {token_endpoint_auth_method}",
            )
        client = RegisteredClient(
            client_id=secrets.token_urlsafe(32),
            client_name=client_name,
            redirect_uris=list(redirect_uris or []),
            token_endpoint_auth_method=token_endpoint_auth_method,
        )
        if token_endpoint_auth_method == "client_secret_post":
            client.client_secret = secrets.token_urlsafe(32)
        with self._lock:
            self._clients[client.client_id] = client
        logger.info("Registered client %r (%s)", client_name, token_endpoint_auth_method)
        return client

    def get(self, client_id: str) -> RegisteredClient | None:
        with self._lock:
            return self._clients.get(client_id)

    def check_redirect_uri(self, client_id: str, redirect_uri: str) -> None:
        """Registered clients may only use their registered redirect URIs."""
        client = self.get(client_id)
        if client and client.redirect_uris and redirect_uri not in client.redirect_uris:
            raise OAuthError("invalid_request", "redirect_uri is not registered for this client")

    def authenticate(self, client_id: str, client_secret: str | None) -> None:
        """Confidential clients must present their secret at the token endpoint."""
        client = self.get(client_id)
        if client is None or client.client_secret is None:
            return
        if not client_secret or not hmac.compare_digest(client.client_secret, client_secret):
            raise OAuthError("invalid_client", "Client authentication failed", status_code=401)
