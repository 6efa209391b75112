"""Tools that talk about the authenticated user."""

from __future__ import annotations

from pydantic import BaseModel, Field

from social_mcp.auth.models import Principal
from social_mcp.tools.registry import ToolRegistry


class GreetUserArgs(BaseModel):
    message: str | None = Field(default=None, description="Optional custom greeting message")


class GetUserInfoArgs(BaseModel):
    pass


def greet_user(principal: Principal, args: GreetUserArgs) -> str:
    greeting = args.message or f"Hello, {principal.display_name}!"
    return (
        f"{greeting}\n\n"
        f"Signed in as {principal.display_name} via {principal.login_method.value} login."
    )


def get_user_info(principal: Principal, args: GetUserInfoArgs) -> str:
    lines = [
        f"User ID: {principal.id}",
        f"Name: {principal.display_name}",
        f"Email: {principal.email or 'not shared'}",
        f"Login method: {principal.login_method.value}",
    ]
    if principal.picture:
        lines.append(f"Picture: {principal.picture}")
    return "\n".join(lines)


def register_greeting_tools(registry: ToolRegistry) -> None:
    """Register user-facing greeting tools."""
    registry.tool(
        "greet_user",
        "Greet the authenticated user, optionally with a custom message",
        GreetUserArgs,
    )(greet_user)
    registry.tool(
        "get_user_info",
        "Get information about the authenticated user",
        GetUserInfoArgs,
    )(get_user_info)
