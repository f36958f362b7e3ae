"""
Tool sets exposed to agents.
Concrete tools (file I/O, package installs, screenshots) are supplied by the host.
"""

from .base import CompositeToolSet, FunctionTool, Tool, ToolRegistry, ToolSet

__all__ = [
    "CompositeToolSet",
    "FunctionTool",
    "Tool",
    "ToolRegistry",
    "ToolSet",
]
