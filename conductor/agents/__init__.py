"""
Agents: the think -> act -> observe loop and its routable specializations.
"""

from .agent import ARTIFACT_TOOLS, Agent, ProgressCallback
from .presets import (
    SUB_AGENT_PRESETS,
    SubAgentPreset,
    create_planner,
    create_sub_agent,
    get_preset,
    get_preset_by_name,
    get_presets,
)
from .sub_agent import AgentLoad, SubAgent
from .task import AgentEvent, AgentProgress, AgentResult, EventType, Task

__all__ = [
    "ARTIFACT_TOOLS",
    "Agent",
    "AgentEvent",
    "AgentLoad",
    "AgentProgress",
    "AgentResult",
    "EventType",
    "ProgressCallback",
    "SUB_AGENT_PRESETS",
    "SubAgent",
    "SubAgentPreset",
    "Task",
    "create_planner",
    "create_sub_agent",
    "get_preset",
    "get_preset_by_name",
    "get_presets",
]
