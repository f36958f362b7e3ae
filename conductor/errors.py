"""
Exception hierarchy for orchestration failures.
"""

from typing import Optional


class ConductorError(Exception):
    pass


class RoutingError(ConductorError):
    """No registered agent is able to take the task."""

    def __init__(self, task_id: str, message: str = "No available agents to handle task"):
        super().__init__(f"{message} (task {task_id})")
        self.task_id = task_id


class TaskTimeoutError(ConductorError, TimeoutError):
    def __init__(self, task_id: str, timeout: float):
        super().__init__(f"Task {task_id} timed out after {timeout:g}s")
        self.task_id = task_id
        self.timeout = timeout


class OrchestratorError(ConductorError):
    def __init__(self, message: str, execution_id: Optional[str] = None):
        super().__init__(message)
        self.execution_id = execution_id
