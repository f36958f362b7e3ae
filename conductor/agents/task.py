"""
Task, result and event types shared by agents and the orchestrator.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional

from ..artifacts import Artifact, ArtifactDraft
from ..clients.base import ToolCall, ToolResult


@dataclass(frozen=True)
class Task:
    """A unit of work. Never mutated after dispatch; use ``enriched`` to derive copies."""

    id: str
    prompt: str
    parent_task_id: Optional[str] = None
    context: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    previous_outputs: tuple[str, ...] = ()
    existing_artifacts: tuple[Artifact, ...] = ()

    def enriched(
        self,
        context: Optional[dict[str, Any]] = None,
        previous_outputs: Optional[list[str]] = None,
        existing_artifacts: Optional[list[Artifact]] = None,
    ) -> "Task":
        return replace(
            self,
            context=dict(context if context is not None else self.context),
            metadata=dict(self.metadata),
            previous_outputs=tuple(previous_outputs) if previous_outputs is not None else self.previous_outputs,
            existing_artifacts=tuple(existing_artifacts) if existing_artifacts is not None else self.existing_artifacts,
        )


@dataclass
class AgentResult:
    agent_id: str
    output: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolResult] = field(default_factory=list)
    artifacts: list[ArtifactDraft] = field(default_factory=list)
    iterations: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class AgentProgress:
    iteration: int
    max_iterations: int
    current_tool_call: Optional[str] = None
    completed_tool_calls: int = 0


class EventType(Enum):
    ITERATION = "iteration"
    THOUGHT = "thought"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    RESPONSE = "response"
    DONE = "done"


@dataclass
class AgentEvent:
    type: EventType
    content: Optional[str] = None
    tool_call: Optional[ToolCall] = None
    tool_result: Optional[ToolResult] = None
    iteration: Optional[int] = None
    max_iterations: Optional[int] = None
