# src/core/__init__.py
"""Core modules for the Forecast Chat app."""

from src.core.config import get_settings, Settings
from src.core.agent import ChatAgent

__all__ = [
    "get_settings",
    "Settings",
    "ChatAgent",
]
