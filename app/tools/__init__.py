"""Splitwise tools exposed over the Model Context Protocol."""

from .endpoints import ENDPOINTS, TOOL_DEFINITIONS
from .executor import ToolExecutor

__all__ = ["ENDPOINTS", "TOOL_DEFINITIONS", "ToolExecutor"]
