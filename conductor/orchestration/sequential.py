"""
Sequential and conditional workflows.
Tasks run one at a time; each sees truncated outputs of the tasks before it
and every artifact they produced.
"""

from typing import Any, Awaitable, Callable

from ..agents.task import AgentResult, Task
from ..artifacts import ArtifactRegistry
from .state import WorkflowMode

RunTask = Callable[[Task], Awaitable[AgentResult]]
MergeArtifacts = Callable[[AgentResult], Awaitable[Any]]


def output_excerpt(role: str, output: str, limit: int) -> str:
    suffix = "..." if len(output) > limit else ""
    return f"[Agent: {role}] {output[:limit]}{suffix}"


class SequentialWorkflow:
    mode = WorkflowMode.SEQUENTIAL

    def __init__(
        self,
        run_task: RunTask,
        merge_artifacts: MergeArtifacts,
        registry: ArtifactRegistry,
        role_of: Callable[[str], str],
        excerpt_chars: int = 500,
    ):
        self.run_task = run_task
        self.merge_artifacts = merge_artifacts
        self.registry = registry
        self.role_of = role_of
        self.excerpt_chars = excerpt_chars

    def _prepare(self, task: Task, previous_outputs: list[str]) -> Task:
        return task.enriched(
            previous_outputs=previous_outputs,
            existing_artifacts=self.registry.get_all(),
        )

    def _record(self, task: Task, result: AgentResult):
        pass

    async def execute(self, tasks: list[Task]) -> list[AgentResult]:
        results: list[AgentResult] = []
        previous_outputs: list[str] = []

        for task in tasks:
            result = await self.run_task(self._prepare(task, previous_outputs))
            results.append(result)
            self._record(task, result)

            previous_outputs.append(
                output_excerpt(self.role_of(result.agent_id), result.output, self.excerpt_chars)
            )
            await self.merge_artifacts(result)

        return results


class ConditionalWorkflow(SequentialWorkflow):
    """Sequential execution that also threads each output into later tasks' context."""

    mode = WorkflowMode.CONDITIONAL

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.shared_context: dict[str, Any] = {}

    def _prepare(self, task: Task, previous_outputs: list[str]) -> Task:
        return task.enriched(
            context={**self.shared_context, **task.context},
            previous_outputs=previous_outputs,
            existing_artifacts=self.registry.get_all(),
        )

    def _record(self, task: Task, result: AgentResult):
        self.shared_context[f"result_{task.id}"] = result.output
