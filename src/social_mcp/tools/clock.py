"""Current-time tool.

Unknown time zone names are rejected with invalid params rather than
silently answered in UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field

from social_mcp.auth.models import Principal
from social_mcp.tools.registry import InvalidArguments, ToolRegistry


class GetCurrentTimeArgs(BaseModel):
    timezone: str = Field(
        default="UTC",
        description="IANA time zone name, e.g. 'UTC' or 'America/New_York'",
    )


def resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise InvalidArguments("invalid_timezone", f"Unknown timezone: {name}") from e


def get_current_time(principal: Principal, args: GetCurrentTimeArgs) -> str:
    tz = resolve_timezone(args.timezone)
    now = datetime.now(timezone.utc).astimezone(tz)
    return f"Current time: {now.isoformat(timespec='seconds')} ({args.timezone})"


def register_clock_tools(registry: ToolRegistry) -> None:
    registry.tool(
        "get_current_time",
        "Get the current date and time in a given timezone",
        GetCurrentTimeArgs,
    )(get_current_time)
