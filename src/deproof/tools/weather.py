"""Weather tools backed by the US National Weather Service API.

Provides ``get-alerts`` (active alerts for a state) and ``get-forecast``
(forecast periods for a coordinate). Only US locations are covered.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from deproof.config.schema import WeatherConfig

logger = logging.getLogger(__name__)


class NWSClient:
    """Thin JSON client for api.weather.gov.

    Failures (HTTP errors, transport errors, timeouts) are logged and
    reported as ``None`` so tools can answer with a readable message.
    """

    def __init__(
        self,
        config: WeatherConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or WeatherConfig()
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._config.base_url.rstrip("/")

    async def get_json(self, url: str) -> dict[str, Any] | None:
        headers = {
            "User-Agent": self._config.user_agent,
            "Accept": "application/geo+json",
        }
        logger.info("NWS request: %s", url)
        try:
            async with httpx.AsyncClient(
                timeout=self._config.request_timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(url, headers=headers)
                response.raise_for_status()
                data: dict[str, Any] = response.json()
        except httpx.TimeoutException:
            logger.error("NWS request timed out: %s", url)
            return None
        except httpx.HTTPStatusError as e:
            logger.error("NWS HTTP error %d: %s", e.response.status_code, url)
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error("NWS request failed: %s (%s)", url, e)
            return None
        return data


def format_alert(feature: dict[str, Any]) -> str:
    """Format one alert feature as a text block."""
    props = feature.get("properties") or {}
    return "\n".join(
        [
            f"Event: {props.get('event') or 'Unknown'}",
            f"Area: {props.get('areaDesc') or 'Unknown'}",
            f"Severity: {props.get('severity') or 'Unknown'}",
            f"Status: {props.get('status') or 'Unknown'}",
            f"Headline: {props.get('headline') or 'No headline'}",
            "---",
        ]
    )


def format_period(period: dict[str, Any]) -> str:
    """Format one forecast period as a text block."""
    temperature = period.get("temperature")
    if temperature is None or temperature == "":
        temperature = "Unknown"
    return "\n".join(
        [
            f"{period.get('name') or 'Unknown'}:",
            f"Temperature: {temperature}°{period.get('temperatureUnit') or 'F'}",
            f"Wind: {period.get('windSpeed') or 'Unknown'} "
            f"{period.get('windDirection') or ''}",
            f"{period.get('shortForecast') or 'No forecast available'}",
            "---",
        ]
    )


class AlertsTool:
    """Active weather alerts for a US state.

    Implements the :class:`Tool` protocol.
    """

    def __init__(self, client: NWSClient | None = None) -> None:
        self._client = client or NWSClient()

    @property
    def name(self) -> str:
        return "get-alerts"

    @property
    def description(self) -> str:
        return "Get weather alerts for a state"

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "state": {
                    "type": "string",
                    "minLength": 2,
                    "maxLength": 2,
                    "description": "Two-letter state code (e.g. CA, NY)",
                },
            },
            "required": ["state"],
        }

    async def execute(self, **kwargs: Any) -> str:
        """Fetch and format active alerts.

        Raises:
            ValueError: If 'state' is not a two-letter string.
        """
        state = kwargs.get("state")
        if not isinstance(state, str) or len(state) != 2:
            msg = "Parameter 'state' is required and must be a two-letter code."
            raise ValueError(msg)

        state_code = state.upper()
        data = await self._client.get_json(
            f"{self._client.base_url}/alerts?area={state_code}"
        )
        if not data:
            return "Failed to retrieve alerts data"

        features = data.get("features") or []
        if not features:
            return f"No active alerts for {state_code}"

        formatted = "\n".join(format_alert(f) for f in features)
        return f"Active alerts for {state_code}:\n\n{formatted}"


def _coordinate(kwargs: dict[str, Any], name: str, limit: float) -> float:
    value = kwargs.get(name)
    if isinstance(value, bool) or not isinstance(value, int | float):
        msg = f"Parameter '{name}' is required and must be a number."
        raise ValueError(msg)
    if not -limit <= value <= limit:
        msg = f"Parameter '{name}' must be between {-limit:g} and {limit:g}."
        raise ValueError(msg)
    return float(value)


class ForecastTool:
    """Forecast periods for a latitude/longitude pair.

    Implements the :class:`Tool` protocol.
    """

    def __init__(self, client: NWSClient | None = None) -> None:
        self._client = client or NWSClient()

    @property
    def name(self) -> str:
        return "get-forecast"

    @property
    def description(self) -> str:
        return "Get weather forecast for a location"

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "latitude": {
                    "type": "number",
                    "minimum": -90,
                    "maximum": 90,
                    "description": "Latitude of the location",
                },
                "longitude": {
                    "type": "number",
                    "minimum": -180,
                    "maximum": 180,
                    "description": "Longitude of the location",
                },
            },
            "required": ["latitude", "longitude"],
        }

    async def execute(self, **kwargs: Any) -> str:
        """Resolve the NWS grid point, then fetch and format its forecast.

        Raises:
            ValueError: If a coordinate is missing or out of range.
        """
        latitude = _coordinate(kwargs, "latitude", 90)
        longitude = _coordinate(kwargs, "longitude", 180)

        points = await self._client.get_json(
            f"{self._client.base_url}/points/{latitude:.4f},{longitude:.4f}"
        )
        if not points:
            return (
                "Failed to retrieve grid point data for coordinates: "
                f"{latitude}, {longitude}. This location may not be supported "
                "by the NWS API (only US locations are supported)."
            )

        forecast_url = (points.get("properties") or {}).get("forecast")
        if not forecast_url:
            return "Failed to get forecast URL from grid point data"

        forecast = await self._client.get_json(forecast_url)
        if not forecast:
            return "Failed to retrieve forecast data"

        periods = (forecast.get("properties") or {}).get("periods") or []
        if not periods:
            return "No forecast periods available"

        formatted = "\n".join(format_period(p) for p in periods)
        return f"Forecast for {latitude}, {longitude}:\n\n{formatted}"


def default_tools(config: WeatherConfig | None = None) -> list[AlertsTool | ForecastTool]:
    """Return the weather tools sharing one NWS client."""
    client = NWSClient(config)
    return [AlertsTool(client), ForecastTool(client)]
