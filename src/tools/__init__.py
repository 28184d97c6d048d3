"""Tools exposed to the chat agent."""

from src.tools.weather import OpenMeteoClient, ForecastRequest, get_forecast_for_agent
from src.tools.sandbox import PythonSandbox, CodeExecutionRequest, execute_python_for_agent
from src.tools.registry import build_tools

__all__ = [
    "OpenMeteoClient",
    "ForecastRequest",
    "get_forecast_for_agent",
    "PythonSandbox",
    "CodeExecutionRequest",
    "execute_python_for_agent",
    "build_tools",
]
