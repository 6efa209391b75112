"""Records held by the authorization server."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class LoginMethod(str, Enum):
    """How the identity collaborator authenticated the user."""

    DEMO = "demo"
    GOOGLE = "google"
    GITHUB = "github"
    MICROSOFT = "microsoft"


@dataclass(frozen=True)
class Principal:
    """Identity asserted by the identity collaborator.

    The server never checks credentials itself; it only shapes and forwards
    what the collaborator established.
    """

    id: str
    display_name: str
    login_method: LoginMethod = LoginMethod.DEMO
    email: str | None = None
    picture: str | None = None

    def to_claims(self) -> dict[str, Any]:
        claims = asdict(self)
        claims["login_method"] = self.login_method.value
        return claims

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> Principal:
        return cls(
            id=str(claims["id"]),
            display_name=str(claims.get("display_name") or claims["id"]),
            login_method=LoginMethod(claims.get("login_method", LoginMethod.DEMO.value)),
            email=claims.get("email"),
            picture=claims.get("picture"),
        )


@dataclass(frozen=True)
class AuthorizeRequest:
    """A validated ``/oauth/authorize`` request."""

    client_id: str
    redirect_uri: str
    scope: frozenset[str]
    state: str | None = None
    code_challenge: str | None = None
    code_challenge_method: str | None = None


@dataclass(frozen=True)
class PendingAuthorization:
    """An authorize request waiting for the identity collaborator."""

    transaction_id: str
    request: AuthorizeRequest
    expires_at: float


@dataclass(frozen=True)
class AuthorizationCode:
    """Single-use code bound to a redirect target and optional PKCE challenge."""

    code: str
    client_id: str
    redirect_uri: str
    scope: frozenset[str]
    principal: Principal
    expires_at: float
    code_challenge: str | None = None
    code_challenge_method: str | None = None


@dataclass(frozen=True)
class Session:
    """Access-token session created by a successful code exchange."""

    access_token: str
    refresh_token: str
    principal: Principal
    scope: frozenset[str]
    client_id: str
    expires_at: float


@dataclass
class RegisteredClient:
    """Client created through dynamic client registration."""

    client_id: str
    client_name: str
    redirect_uris: list[str] = field(default_factory=list)
    client_secret: str | None = None
    token_endpoint_auth_method: str = "none"


class OAuthError(Exception):
    """OAuth protocol failure rendered as ``{error, error_description}``."""

    def __init__(self, error: str, description: str = "", status_code: int = 400) -> None:
        self.error = error
        self.description = description
        self.status_code = status_code
        super().__init__(f"{error}: {description}" if description else error)

    def to_dict(self) -> dict[str, str]:
        body = {"error": self.error}
        if self.description:
            body["error_description"] = self.description
        return body


def format_scope(scope: frozenset[str]) -> str:
    return " ".join(sorted(scope))


def parse_scope(raw: str | None) -> frozenset[str]:
    return frozenset((raw or "").split())
