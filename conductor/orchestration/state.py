"""
Per-execution task tracking.
Execution records are owned by the orchestrator; agents only see a one-way progress callback.
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from ..agents.task import AgentProgress


class WorkflowMode(Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    CONDITIONAL = "conditional"


class TaskStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TaskExecution:
    task_id: str
    agent_id: str
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    retries: int = 0
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    current_iteration: Optional[int] = None
    max_iterations: Optional[int] = None
    current_tool_call: Optional[str] = None
    completed_tool_calls: int = 0
    artifact_count: int = 0
    error: Optional[str] = None

    @property
    def duration(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return self.end_time - self.start_time

    def update_progress(self, progress: AgentProgress):
        self.current_iteration = progress.iteration
        self.max_iterations = progress.max_iterations
        self.current_tool_call = progress.current_tool_call
        self.completed_tool_calls = progress.completed_tool_calls


class ExecutionTracker:
    def __init__(self):
        self._executions: dict[str, TaskExecution] = {}
        self._active: set[str] = set()

    def start(self, task_id: str, agent_id: str, description: str = "", retries: int = 0) -> TaskExecution:
        execution = TaskExecution(
            task_id=task_id,
            agent_id=agent_id,
            description=description[:200],
            status=TaskStatus.RUNNING,
            retries=retries,
        )
        # a retry replaces the record of the failed attempt
        self._executions[task_id] = execution
        self._active.add(task_id)
        return execution

    def complete(self, execution: TaskExecution, artifact_count: int = 0):
        execution.status = TaskStatus.COMPLETED
        execution.end_time = time.time()
        execution.current_tool_call = None
        execution.artifact_count = artifact_count
        self._active.discard(execution.task_id)

    def fail(self, execution: TaskExecution, error: BaseException):
        execution.status = TaskStatus.FAILED
        execution.end_time = time.time()
        execution.error = str(error) or type(error).__name__
        self._active.discard(execution.task_id)

    def get(self, task_id: str) -> Optional[TaskExecution]:
        return self._executions.get(task_id)

    def snapshot(self) -> list[TaskExecution]:
        return [replace(e) for e in self._executions.values()]

    @property
    def active_count(self) -> int:
        return len(self._active)

    def __len__(self) -> int:
        return len(self._executions)

    def clear(self):
        self._executions.clear()
        self._active.clear()
