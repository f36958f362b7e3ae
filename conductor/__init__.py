"""
Conductor - multi-agent orchestration.
Plans an objective, routes tasks to specialized agents and versions their artifacts.
"""

__version__ = "0.1.0"

from .ui import ui, ConsoleUI
from .agents import Agent, AgentResult, SubAgent, Task, create_sub_agent
from .artifacts import Artifact, ArtifactRegistry, ArtifactType
from .config import Config, OrchestratorConfig, load_config
from .errors import ConductorError, OrchestratorError, RoutingError, TaskTimeoutError
from .factory import create_orchestrator
from .orchestration import Orchestrator, OrchestratorResult, TaskRouter, WorkflowMode

__all__ = [
    "Agent",
    "AgentResult",
    "Artifact",
    "ArtifactRegistry",
    "ArtifactType",
    "ConductorError",
    "Config",
    "ConsoleUI",
    "Orchestrator",
    "OrchestratorConfig",
    "OrchestratorError",
    "OrchestratorResult",
    "RoutingError",
    "SubAgent",
    "Task",
    "TaskRouter",
    "TaskTimeoutError",
    "WorkflowMode",
    "create_orchestrator",
    "create_sub_agent",
    "load_config",
    "ui",
    "__version__",
]
