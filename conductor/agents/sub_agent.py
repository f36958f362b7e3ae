"""
Specialized agent with capability and concurrency bookkeeping for routing.
"""

from dataclasses import dataclass
from typing import Any, Optional

from .agent import Agent, ProgressCallback
from .task import AgentResult, Task


@dataclass(frozen=True)
class AgentLoad:
    active: int
    max: int

    @property
    def utilization(self) -> float:
        return self.active / self.max


class SubAgent(Agent):
    def __init__(
        self,
        agent_id: str,
        backend,
        specialization: str,
        capabilities: Optional[list[str]] = None,
        priority: int = 5,
        max_concurrent_tasks: int = 1,
        **kwargs: Any,
    ):
        if not 0 <= priority <= 10:
            raise ValueError(f"priority must be between 0 and 10, got {priority}")
        if max_concurrent_tasks < 1:
            raise ValueError("max_concurrent_tasks must be positive")

        kwargs.setdefault("role", specialization)
        super().__init__(agent_id, backend, **kwargs)
        self.specialization = specialization
        self.capabilities = list(capabilities or [])
        self.priority = priority
        self.max_concurrent_tasks = max_concurrent_tasks
        self._active_tasks: set[str] = set()

    def can_handle(self, task: Task) -> bool:
        if len(self._active_tasks) >= self.max_concurrent_tasks:
            return False

        required = task.metadata.get("required_capability")
        if required:
            return required in self.capabilities

        return True

    async def execute(self, task: Task, on_progress: Optional[ProgressCallback] = None) -> AgentResult:
        # the slot is claimed before the first suspension point
        self._active_tasks.add(task.id)
        try:
            result = await super().execute(task, on_progress)
        finally:
            self._active_tasks.discard(task.id)

        result.metadata.update({
            "specialization": self.specialization,
            "capabilities": list(self.capabilities),
            "priority": self.priority,
        })
        return result

    def get_load(self) -> AgentLoad:
        return AgentLoad(active=len(self._active_tasks), max=self.max_concurrent_tasks)

    @property
    def active_task_ids(self) -> frozenset[str]:
        return frozenset(self._active_tasks)

    def get_info(self) -> dict[str, Any]:
        load = self.get_load()
        return {
            **super().get_info(),
            "specialization": self.specialization,
            "capabilities": list(self.capabilities),
            "priority": self.priority,
            "load": {"active": load.active, "max": load.max, "utilization": load.utilization},
        }
