"""Local time tool for the AI agent.

Runs automatically without user confirmation, since reading the clock has no
side effects.
"""

import logging
from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field

from chat_agent.agent.models import ToolDef

logger = logging.getLogger(__name__)

# Common city names mapped to IANA time zones
TIMEZONE_MAP: dict[str, str] = {
    "london": "Europe/London",
    "new york": "America/New_York",
    "tokyo": "Asia/Tokyo",
    "paris": "Europe/Paris",
    "sydney": "Australia/Sydney",
    "los angeles": "America/Los_Angeles",
    "chicago": "America/Chicago",
    "mumbai": "Asia/Kolkata",
    "dubai": "Asia/Dubai",
    "singapore": "Asia/Singapore",
}

TIME_FORMAT = "%A, %B %d, %Y at %I:%M:%S %p"


class GetLocalTimeArgs(BaseModel):
    """Arguments for the local time lookup."""

    location: str = Field(
        ...,
        min_length=1,
        description="Location or timezone, e.g. 'London', 'America/New_York', 'UTC'",
    )


def resolve_timezone(location: str) -> str:
    """Resolve a city name to a time zone key.

    Unknown locations are returned unchanged so that IANA names such as
    'America/New_York' work directly.

    :param location: City name or time zone key.
    :returns: Time zone key.
    """
    return TIMEZONE_MAP.get(location.strip().lower(), location.strip())


def get_local_time(args: GetLocalTimeArgs, now: datetime | None = None) -> str:
    """Format the current time for a location.

    :param args: Validated tool arguments.
    :param now: Reference time, defaults to the current time.
    :returns: Time description or a readable failure message.
    """
    location = args.location
    logger.info(f"Getting local time for {location}")

    try:
        zone = ZoneInfo(resolve_timezone(location))
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        logger.warning(f"Unknown time zone: location={location!r}")
        return f"Could not determine time for {location}. Error: {e}"

    current = (now or datetime.now(UTC)).astimezone(zone)
    return f"The current time in {location} is: {current.strftime(TIME_FORMAT)}"


LOCAL_TIME_TOOL = ToolDef(
    name="getLocalTime",
    description="Get the current local time for a specified location or timezone",
    args_model=GetLocalTimeArgs,
    handler=get_local_time,
)
