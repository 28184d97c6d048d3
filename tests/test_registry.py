"""Tests for the LangChain tool wrappers."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from src.tools.registry import build_tools
from src.tools.sandbox import CodeExecutionResult, PythonSandbox
from src.tools.weather import (
    DEFAULT_DAILY_VARIABLES,
    DailyVariable,
    ForecastRequest,
    ForecastSuccess,
    OpenMeteoClient,
)


@pytest.fixture
def fake_weather_client() -> MagicMock:
    client = MagicMock(spec=OpenMeteoClient)
    client.get_forecast.side_effect = lambda request: ForecastSuccess(
        latitude=request.latitude,
        longitude=request.longitude,
        forecast_days=request.forecast_days,
        daily=request.daily,
        forecast=[],
    )
    return client


@pytest.fixture
def fake_sandbox() -> MagicMock:
    sandbox = MagicMock(spec=PythonSandbox)
    sandbox.execute.return_value = CodeExecutionResult(stdout="4\n", stderr="", exit_code=0)
    return sandbox


@pytest.fixture
def tools(fake_weather_client: MagicMock, fake_sandbox: MagicMock) -> dict:
    return {t.name: t for t in build_tools(fake_weather_client, fake_sandbox)}


class TestBuildTools:
    def test_tool_names(self, tools: dict) -> None:
        assert set(tools) == {"get_weather_forecast", "execute_python"}

    def test_weather_schema_exposes_constraints(self, tools: dict) -> None:
        schema = tools["get_weather_forecast"].args
        assert set(schema) == {"latitude", "longitude", "forecast_days", "daily"}


class TestWeatherTool:
    def test_invokes_client_with_validated_request(
        self, tools: dict, fake_weather_client: MagicMock
    ) -> None:
        result = tools["get_weather_forecast"].invoke(
            {"latitude": 48.85, "longitude": 2.35, "forecast_days": 2, "daily": ["weathercode"]}
        )

        request = fake_weather_client.get_forecast.call_args.args[0]
        assert isinstance(request, ForecastRequest)
        assert request.daily == (DailyVariable.WEATHERCODE,)
        assert result["forecast_days"] == 2
        assert result["daily"] == ["weathercode"]

    def test_omitted_daily_uses_defaults(self, tools: dict, fake_weather_client: MagicMock) -> None:
        tools["get_weather_forecast"].invoke({"latitude": 0, "longitude": 0})

        request = fake_weather_client.get_forecast.call_args.args[0]
        assert request.daily == DEFAULT_DAILY_VARIABLES
        assert request.forecast_days == 3

    @pytest.mark.parametrize(
        "args",
        [
            {"latitude": 100, "longitude": 0},
            {"latitude": 0, "longitude": 0, "forecast_days": 10},
            {"latitude": 0, "longitude": 0, "daily": ["humidity"]},
        ],
    )
    def test_invalid_arguments_are_rejected_before_invocation(
        self, tools: dict, fake_weather_client: MagicMock, args: dict
    ) -> None:
        with pytest.raises(ValidationError):
            tools["get_weather_forecast"].invoke(args)

        fake_weather_client.get_forecast.assert_not_called()


class TestPythonTool:
    def test_returns_wire_dict(self, tools: dict, fake_sandbox: MagicMock) -> None:
        result = tools["execute_python"].invoke({"code": "print(2 + 2)"})

        fake_sandbox.execute.assert_called_once_with("print(2 + 2)")
        assert result == {"stdout": "4\n", "stderr": "", "exitCode": 0}

    def test_empty_code_is_rejected(self, tools: dict, fake_sandbox: MagicMock) -> None:
        with pytest.raises(ValidationError):
            tools["execute_python"].invoke({"code": ""})

        fake_sandbox.execute.assert_not_called()
