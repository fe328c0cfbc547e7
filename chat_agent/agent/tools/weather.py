"""Weather lookup tool backed by the Open-Meteo API.

The tool is confirmation-required: its definition carries no handler and the
lookup runs from the execution table once the user approves the call. Every
failure is returned as a readable string, since the result is shown to the
model as tool output.
"""

import logging
from dataclasses import dataclass

import requests
from pydantic import BaseModel, Field
from requests.exceptions import RequestException

from chat_agent.agent.models import ToolDef

logger = logging.getLogger(__name__)

WEATHER_TOOL_NAME = "getWeatherInformation"

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

DEFAULT_TIMEOUT = 10

CURRENT_FIELDS = (
    "temperature_2m,relative_humidity_2m,apparent_temperature,"
    "precipitation,weather_code,wind_speed_10m"
)

# WMO weather interpretation codes
WEATHER_DESCRIPTIONS: dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


class GetWeatherArgs(BaseModel):
    """Arguments for the weather lookup."""

    city: str = Field(
        ...,
        min_length=1,
        description="The city name to get weather for, e.g. 'London', 'New York', 'Tokyo'",
    )


@dataclass(frozen=True)
class GeoLocation:
    """First geocoding match for a city name."""

    latitude: float
    longitude: float
    name: str
    country: str


@dataclass(frozen=True)
class CurrentConditions:
    """Current weather conditions at a location."""

    temperature: float
    apparent_temperature: float
    humidity: float
    precipitation: float
    weather_code: int
    wind_speed: float


class WeatherLookupError(Exception):
    """Raised when a weather lookup step fails with a user-facing message."""


def describe_weather_code(code: int) -> str:
    """Map a WMO weather code to a readable condition.

    :param code: Numeric weather code.
    :returns: Condition description, or 'Unknown' for unmapped codes.
    """
    return WEATHER_DESCRIPTIONS.get(code, "Unknown")


def geocode_city(
    city: str,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> GeoLocation:
    """Resolve a free-text city name to coordinates.

    :param city: City name to look up.
    :param session: Optional HTTP session.
    :param timeout: Request timeout in seconds.
    :returns: The first matching location.
    :raises WeatherLookupError: If the geocoder fails or finds no match.
    :raises RequestException: On transport errors.
    """
    http = session or requests
    response = http.get(
        GEOCODING_URL,
        params={"name": city, "count": 1, "language": "en", "format": "json"},
        timeout=timeout,
    )
    if not response.ok:
        logger.warning(f"Geocoding failed: city={city!r}, status={response.status_code}")
        raise WeatherLookupError(f"Unable to find location data for {city}")

    results = response.json().get("results") or []
    if not results:
        logger.info(f"No geocoding results: city={city!r}")
        raise WeatherLookupError(
            f'Could not find weather data for "{city}". '
            "Please check the city name and try again."
        )

    first = results[0]
    return GeoLocation(
        latitude=first["latitude"],
        longitude=first["longitude"],
        name=first.get("name", city),
        country=first.get("country", ""),
    )


def fetch_current_conditions(
    location: GeoLocation,
    city: str,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> CurrentConditions:
    """Fetch current conditions for a geocoded location.

    :param location: Location to fetch conditions for.
    :param city: Original city name, used in error messages.
    :param session: Optional HTTP session.
    :param timeout: Request timeout in seconds.
    :returns: Current conditions.
    :raises WeatherLookupError: If the forecast API responds with an error.
    :raises RequestException: On transport errors.
    """
    http = session or requests
    response = http.get(
        FORECAST_URL,
        params={
            "latitude": location.latitude,
            "longitude": location.longitude,
            "current": CURRENT_FIELDS,
            "timezone": "auto",
        },
        timeout=timeout,
    )
    if not response.ok:
        logger.warning(f"Forecast request failed: city={city!r}, status={response.status_code}")
        raise WeatherLookupError(f"Unable to fetch weather data for {city}")

    current = response.json()["current"]
    return CurrentConditions(
        temperature=current["temperature_2m"],
        apparent_temperature=current["apparent_temperature"],
        humidity=current["relative_humidity_2m"],
        precipitation=current.get("precipitation") or 0,
        weather_code=current["weather_code"],
        wind_speed=current["wind_speed_10m"],
    )


def format_weather_report(location: GeoLocation, conditions: CurrentConditions) -> str:
    """Render current conditions as a Markdown summary.

    :param location: Resolved location.
    :param conditions: Current conditions.
    :returns: Formatted report. Precipitation is only listed when above zero.
    """
    lines = [
        f"**Weather in {location.name}, {location.country}:**",
        "",
        f"**Temperature:** {conditions.temperature}°C "
        f"(feels like {conditions.apparent_temperature}°C)",
        f"**Conditions:** {describe_weather_code(conditions.weather_code)}",
        f"**Humidity:** {conditions.humidity}%",
        f"**Wind Speed:** {conditions.wind_speed} km/h",
    ]
    if conditions.precipitation > 0:
        lines.append(f"**Precipitation:** {conditions.precipitation} mm")
    lines.extend(["", "*Data from Open-Meteo API*"])
    return "\n".join(lines)


def get_weather_information(args: GetWeatherArgs, timeout: float = DEFAULT_TIMEOUT) -> str:
    """Look up current weather for a city.

    :param args: Validated tool arguments.
    :param timeout: Timeout for each HTTP request.
    :returns: Weather report or a readable failure message.
    """
    city = args.city
    logger.info(f"Getting weather information for {city}")

    try:
        with requests.Session() as session:
            location = geocode_city(city, session=session, timeout=timeout)
            conditions = fetch_current_conditions(location, city, session=session, timeout=timeout)
    except WeatherLookupError as e:
        return str(e)
    except (RequestException, KeyError, ValueError):
        logger.exception(f"Weather API error: city={city!r}")
        return (
            f"Sorry, I encountered an error fetching weather data for {city}. "
            "Please try again later."
        )

    return format_weather_report(location, conditions)


WEATHER_TOOL = ToolDef(
    name=WEATHER_TOOL_NAME,
    description=(
        "Get current weather information for a specific city. "
        "Shows temperature, conditions, humidity, and wind speed."
    ),
    args_model=GetWeatherArgs,
)
