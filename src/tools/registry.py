"""
Tool Registry: LangChain tool objects handed to the chat agent.

Argument schemas are pydantic models, so LangChain rejects out-of-range
or malformed arguments before a tool body runs.
"""

from typing import List, Optional

from langchain_core.tools import BaseTool, StructuredTool

from src.tools.sandbox import CodeExecutionRequest, PythonSandbox
from src.tools.weather import DailyVariable, ForecastRequest, OpenMeteoClient

WEATHER_TOOL_DESCRIPTION = (
    "Get weather forecast data for a location. Use this when the user asks about "
    "weather, temperature, rain, wind, or forecasts for any location."
)

PYTHON_TOOL_DESCRIPTION = (
    "Execute Python code for data analysis, calculations, or processing. Write "
    "Python code that prints its results; the tool returns stdout, stderr and "
    "the exit code."
)


def build_tools(
    weather_client: Optional[OpenMeteoClient] = None,
    sandbox: Optional[PythonSandbox] = None,
) -> List[BaseTool]:
    """
    Create the agent's tools.

    Each tool is a closure over its adapter so tests and the API can share
    configured instances.
    """
    weather_client = weather_client or OpenMeteoClient()
    sandbox = sandbox or PythonSandbox()

    def get_weather_forecast(
        latitude: float,
        longitude: float,
        forecast_days: int = 3,
        daily: Optional[List[DailyVariable]] = None,
    ) -> dict:
        request = ForecastRequest(
            latitude=latitude,
            longitude=longitude,
            forecast_days=forecast_days,
            daily=daily,
        )
        return weather_client.get_forecast(request).to_dict()

    def execute_python(code: str) -> dict:
        return sandbox.execute(code).to_dict()

    return [
        StructuredTool.from_function(
            func=get_weather_forecast,
            name="get_weather_forecast",
            description=WEATHER_TOOL_DESCRIPTION,
            args_schema=ForecastRequest,
        ),
        StructuredTool.from_function(
            func=execute_python,
            name="execute_python",
            description=PYTHON_TOOL_DESCRIPTION,
            args_schema=CodeExecutionRequest,
        ),
    ]
