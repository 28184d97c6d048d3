"""Pytest configuration and fixtures for the tool tests."""

from __future__ import annotations

import json
import sys
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from unittest.mock import MagicMock

import pytest
import requests

from src.tools.sandbox import PythonSandbox
from src.tools.weather import OpenMeteoClient


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock requests Session."""
    return MagicMock(spec=requests.Session)


@pytest.fixture
def weather_client(mock_session: MagicMock) -> OpenMeteoClient:
    return OpenMeteoClient(base_url="https://api.open-meteo.test/v1", session=mock_session)


@pytest.fixture
def sandbox() -> PythonSandbox:
    """Runner on the test interpreter with short limits."""
    return PythonSandbox(python_executable=sys.executable, timeout=5, max_output_bytes=64 * 1024)


def create_mock_response(
    status: int = 200,
    json_data: Any = None,
    text_data: str | None = None,
    reason: str = "",
    content_type: str | None = None,
) -> requests.Response:
    """Create a real requests.Response with a canned body.

    Args:
        status: HTTP status code
        json_data: Serialized as the body with a JSON content type
        text_data: Raw body text (used when json_data is None)
        reason: HTTP reason phrase
        content_type: Overrides the inferred Content-Type header

    Returns:
        Response ready to be returned from a mocked session.get
    """
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.encoding = "utf-8"

    if json_data is not None:
        response._content = json.dumps(json_data).encode("utf-8")
        response.headers["Content-Type"] = content_type or "application/json; charset=utf-8"
    else:
        response._content = (text_data or "").encode("utf-8")
        response.headers["Content-Type"] = content_type or "text/plain"

    return response


def open_meteo_payload(days: int = 3, **overrides: Any) -> dict[str, Any]:
    """Build an Open-Meteo style daily payload with aligned arrays."""
    daily = {
        "time": [f"2026-10-{19 + i:02d}" for i in range(days)],
        "temperature_2m_max": [14.2 + i for i in range(days)],
        "temperature_2m_min": [6.1 + i for i in range(days)],
        "precipitation_sum": [0.0, 2.4, 11.8, 0.3, 0.0, 0.0, 1.1][:days],
        "windspeed_10m_max": [18.0 + i for i in range(days)],
        "weathercode": [3, 61, 63, 2, 0, 1, 80][:days],
    }
    daily.update(overrides)
    return {
        "latitude": 52.52,
        "longitude": 13.419998,
        "timezone": "Europe/Berlin",
        "daily_units": {"time": "iso8601"},
        "daily": daily,
    }


class SlowOpenMeteoServer:
    """Local HTTP server answering every GET with a fixed JSON body.

    With byte_delay set, the body is written one byte at a time, so each
    socket read succeeds but the whole transfer takes len(body) * byte_delay.

    Usage:
        with SlowOpenMeteoServer(body, byte_delay=0.1) as server:
            client = OpenMeteoClient(base_url=server.base_url, session=server.session())
    """

    def __init__(self, body: bytes, byte_delay: float = 0.0):
        self.body = body
        self.byte_delay = byte_delay
        self._server = ThreadingHTTPServer(("127.0.0.1", 0), self._handler_class())
        self._server.daemon_threads = True
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)

    @property
    def base_url(self) -> str:
        host, port = self._server.server_address[:2]
        return f"http://{host}:{port}/v1"

    @staticmethod
    def session() -> requests.Session:
        """Session that ignores proxy settings from the environment."""
        session = requests.Session()
        session.trust_env = False
        return session

    def _handler_class(self) -> type[BaseHTTPRequestHandler]:
        body = self.body
        byte_delay = self.byte_delay

        class Handler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                self.send_response(200)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                try:
                    if not byte_delay:
                        self.wfile.write(body)
                        return
                    for i in range(len(body)):
                        self.wfile.write(body[i : i + 1])
                        self.wfile.flush()
                        time.sleep(byte_delay)
                except (BrokenPipeError, ConnectionResetError):
                    return

            def log_message(self, format: str, *args: Any) -> None:
                pass

        return Handler

    def __enter__(self) -> SlowOpenMeteoServer:
        self._thread.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._server.shutdown()
        self._server.server_close()
