"""Shared HTTP response helpers."""

from __future__ import annotations

from typing import Any

import orjson
from starlette.responses import JSONResponse

from social_mcp.auth.bearer import AuthenticationError


class ORJSONResponse(JSONResponse):
    def render(self, content: Any) -> bytes:
        return orjson.dumps(content)


def unauthorized(exc: AuthenticationError, error: str = "unauthorized") -> ORJSONResponse:
    """401 with a Bearer challenge."""
    return ORJSONResponse(
        {"error": error, "reason": exc.reason, "error_description": exc.description},
        status_code=401,
        headers={"WWW-Authenticate": f'Bearer error="invalid_token", error_description="{exc.reason}"'},
    )
