"""
Open-Meteo Tools: Daily weather forecast retrieval.
Builds the forecast query, validates the response shape, and reshapes
the per-variable arrays into one record per forecast day.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.core.config import get_settings

logger = logging.getLogger(__name__)

ERROR_BODY_MAX_CHARS = 1000

INVALID_FORMAT_MESSAGE = "Invalid response format from Open-Meteo API"
TIMEOUT_MESSAGE = "Weather data request timed out. Please try again in a moment."

_PARSE_FAILED = object()

# Error body could not be read or was empty; distinct from a JSON null body
NO_DETAILS = object()


class DailyVariable(str, Enum):
    """Daily variables accepted by the Open-Meteo forecast endpoint."""

    TEMPERATURE_MAX = "temperature_2m_max"
    TEMPERATURE_MIN = "temperature_2m_min"
    PRECIPITATION = "precipitation_sum"
    WINDSPEED_MAX = "windspeed_10m_max"
    WEATHERCODE = "weathercode"

    @property
    def forecast_key(self) -> str:
        """Field name used for this variable in the reshaped forecast."""
        return FORECAST_KEYS[self]


FORECAST_KEYS: Dict[DailyVariable, str] = {
    DailyVariable.TEMPERATURE_MAX: "temperature_max",
    DailyVariable.TEMPERATURE_MIN: "temperature_min",
    DailyVariable.PRECIPITATION: "precipitation",
    DailyVariable.WINDSPEED_MAX: "windspeed_max",
    DailyVariable.WEATHERCODE: "weathercode",
}

DEFAULT_DAILY_VARIABLES: Tuple[DailyVariable, ...] = tuple(DailyVariable)


class ForecastRequest(BaseModel):
    """Validated, immutable parameters for a single forecast lookup."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(
        ge=-90, le=90, allow_inf_nan=False, description="Latitude of the location"
    )
    longitude: float = Field(
        ge=-180, le=180, allow_inf_nan=False, description="Longitude of the location"
    )
    forecast_days: int = Field(
        default=3, ge=1, le=7, description="Number of forecast days (1-7, default: 3)"
    )
    daily: Tuple[DailyVariable, ...] = Field(
        default=DEFAULT_DAILY_VARIABLES,
        description=(
            "Daily variables to include "
            "(default: temperature, precipitation, wind, weathercode)"
        ),
    )

    @field_validator("daily", mode="before")
    @classmethod
    def _default_when_empty(cls, value: Any) -> Any:
        # None and [] both mean "use the built-in variable set"
        if value is None or (isinstance(value, (list, tuple, set)) and not value):
            return DEFAULT_DAILY_VARIABLES
        return value

    @field_validator("daily")
    @classmethod
    def _dedupe(cls, value: Tuple[DailyVariable, ...]) -> Tuple[DailyVariable, ...]:
        return tuple(dict.fromkeys(value))

    def to_params(self) -> Dict[str, Any]:
        """Query parameters for the forecast endpoint."""
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "daily": ",".join(variable.value for variable in self.daily),
            "forecast_days": self.forecast_days,
            "timezone": "auto",
        }


# ── Results ───────────────────────────────────────────────────────


class ForecastErrorKind(str, Enum):
    UPSTREAM_STATUS = "upstream_status"
    INVALID_FORMAT = "invalid_format"
    TIMEOUT = "timeout"
    NETWORK = "network"


@dataclass(frozen=True)
class ForecastError:
    """Failed lookup. Serializes to the tool's error shape."""

    kind: ForecastErrorKind
    message: str
    status: Optional[int] = None
    status_text: Optional[str] = None
    details: Any = NO_DETAILS

    ok = False

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"error": self.message}
        if self.kind is ForecastErrorKind.UPSTREAM_STATUS:
            result["status"] = self.status
            result["statusText"] = self.status_text
            if self.details is not NO_DETAILS:
                result["details"] = self.details
        return result


@dataclass(frozen=True)
class ForecastSuccess:
    """Successful lookup with one entry per forecast day."""

    latitude: float
    longitude: float
    forecast_days: int
    daily: Tuple[DailyVariable, ...]
    forecast: List[Dict[str, Any]] = field(default_factory=list)

    ok = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "forecast_days": self.forecast_days,
            "daily": [variable.value for variable in self.daily],
            "forecast": self.forecast,
        }


# ── Response Parsing ──────────────────────────────────────────────


def read_error_body(response: requests.Response) -> Any:
    """
    Best-effort excerpt of an error response body.

    Tries JSON first when the content type says so, then falls back to
    text truncated to ERROR_BODY_MAX_CHARS. Returns NO_DETAILS when neither
    attempt yields anything. A JSON `null` body is returned as None.
    """
    content_type = response.headers.get("content-type", "")

    if "json" in content_type:
        parsed = _try_json(response)
        if parsed is not _PARSE_FAILED:
            return parsed

    text = _try_text(response)
    return text[:ERROR_BODY_MAX_CHARS] if text else NO_DETAILS


def _try_json(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return _PARSE_FAILED


def _try_text(response: requests.Response) -> Optional[str]:
    try:
        return response.text
    except (requests.RequestException, UnicodeDecodeError) as e:
        logger.debug(f"Could not read error body: {e}")
        return None


def reshape_daily(
    data: Any, variables: Tuple[DailyVariable, ...]
) -> Tuple[Optional[List[Dict[str, Any]]], Optional[str]]:
    """
    Zip Open-Meteo's per-variable daily arrays into per-day records.

    Returns (forecast, None) on success or (None, error_message) when the
    payload is missing the daily block or any array is misaligned with
    daily.time.
    """
    daily_data = data.get("daily") if isinstance(data, dict) else None
    times = daily_data.get("time") if isinstance(daily_data, dict) else None

    if not isinstance(times, list) or not all(isinstance(t, str) for t in times):
        return None, INVALID_FORMAT_MESSAGE

    for variable in variables:
        values = daily_data.get(variable.value)
        if not isinstance(values, list) or len(values) != len(times):
            return None, (
                f"{INVALID_FORMAT_MESSAGE} "
                f"(daily.{variable.value} missing or misaligned)"
            )

    forecast = []
    for i, date in enumerate(times):
        row: Dict[str, Any] = {"date": date}
        for variable in variables:
            row[variable.forecast_key] = daily_data[variable.value][i]
        forecast.append(row)

    return forecast, None


# ── Client ────────────────────────────────────────────────────────


class OpenMeteoClient:
    """Client for Open-Meteo forecast API (free, no key needed)."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.settings = get_settings()
        self.base_url = (base_url or self.settings.open_meteo_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else self.settings.weather_timeout_seconds
        self.session = session

    def _fetch(self, request: ForecastRequest) -> requests.Response:
        """
        GET the forecast and read the whole body within self.timeout.

        requests' own timeout restarts on every socket read, so the
        transfer runs on a daemon thread joined against the total
        deadline. Raises requests.Timeout once the deadline passes.
        """
        http = self.session or requests
        outcome: Dict[str, Any] = {}

        def _transfer():
            try:
                response = http.get(
                    f"{self.base_url}/forecast",
                    params=request.to_params(),
                    headers={"Cache-Control": "no-cache, no-store"},
                    timeout=self.timeout,
                    stream=True,
                )
                outcome["response"] = response
                response.content  # reads and caches the body
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=_transfer, daemon=True)
        worker.start()
        worker.join(timeout=self.timeout)

        if worker.is_alive():
            # The worker is left to finish or fail on its own; closing the
            # response here would wait on the read it is blocked in.
            raise requests.Timeout(f"No complete response within {self.timeout}s")

        if "error" in outcome:
            raise outcome["error"]
        return outcome["response"]

    def get_forecast(self, request: ForecastRequest):
        """
        Fetch a daily forecast. Never raises.

        Args:
            request: Validated forecast parameters

        Returns:
            ForecastSuccess, or ForecastError describing what went wrong
        """
        try:
            response = self._fetch(request)

            if not 200 <= response.status_code < 300:
                reason = response.reason or ""
                message = f"Weather API request failed: {response.status_code}"
                if reason:
                    message += f" {reason}"
                logger.warning(message)
                return ForecastError(
                    kind=ForecastErrorKind.UPSTREAM_STATUS,
                    message=message,
                    status=response.status_code,
                    status_text=reason,
                    details=read_error_body(response),
                )

            try:
                data = response.json()
            except ValueError:
                logger.warning("Open-Meteo returned a non-JSON success body")
                return ForecastError(
                    kind=ForecastErrorKind.INVALID_FORMAT,
                    message=INVALID_FORMAT_MESSAGE,
                )

            forecast, error = reshape_daily(data, request.daily)
            if error:
                logger.warning(error)
                return ForecastError(kind=ForecastErrorKind.INVALID_FORMAT, message=error)

            logger.info(
                f"Forecast for ({request.latitude}, {request.longitude}): "
                f"{len(forecast)} days"
            )
            return ForecastSuccess(
                latitude=request.latitude,
                longitude=request.longitude,
                forecast_days=request.forecast_days,
                daily=request.daily,
                forecast=forecast,
            )

        except requests.Timeout:
            logger.warning(f"Open-Meteo request timed out after {self.timeout}s")
            return ForecastError(kind=ForecastErrorKind.TIMEOUT, message=TIMEOUT_MESSAGE)
        except Exception as e:
            logger.error(f"Weather request failed: {e}")
            return ForecastError(
                kind=ForecastErrorKind.NETWORK,
                message=f"Network or runtime error: {e}",
            )


# ── Agent Tool Interface ──────────────────────────────────────────


def get_forecast_for_agent(
    latitude: float,
    longitude: float,
    forecast_days: int = 3,
    daily: Optional[List[str]] = None,
    client: Optional[OpenMeteoClient] = None,
) -> Dict[str, Any]:
    """
    Unified forecast tool for the agent and the API.

    Called by the agent as:
      {"tool": "get_weather_forecast",
       "args": {"latitude": 52.52, "longitude": 13.41, "forecast_days": 3}}

    Args:
        latitude: Location latitude (-90..90)
        longitude: Location longitude (-180..180)
        forecast_days: Days to forecast (1-7)
        daily: Open-Meteo daily variable names; defaults to all supported

    Returns:
        Forecast dict, or {"error": ...} on any failure
    """
    try:
        request = ForecastRequest(
            latitude=latitude,
            longitude=longitude,
            forecast_days=forecast_days,
            daily=daily,
        )
    except ValidationError as e:
        return {"error": f"Invalid forecast request: {e.errors()[0]['msg']}"}

    client = client or OpenMeteoClient()
    return client.get_forecast(request).to_dict()
