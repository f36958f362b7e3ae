"""
Parallel workflow.
Tasks run in batches of at most ``max_parallel_tasks``. Every task in a batch sees
the same artifact snapshot, taken when the batch starts.
"""

import asyncio
from typing import Callable, Optional

from ..agents.task import AgentResult, Task
from ..artifacts import ArtifactRegistry
from .sequential import MergeArtifacts, RunTask
from .state import WorkflowMode


def make_batches(tasks: list[Task], size: int) -> list[list[Task]]:
    return [tasks[i:i + size] for i in range(0, len(tasks), size)]


class ParallelWorkflow:
    mode = WorkflowMode.PARALLEL

    def __init__(
        self,
        run_task: RunTask,
        merge_artifacts: MergeArtifacts,
        registry: ArtifactRegistry,
        max_parallel_tasks: int = 5,
        on_batch: Optional[Callable[[int, int, int], None]] = None,
    ):
        self.run_task = run_task
        self.merge_artifacts = merge_artifacts
        self.registry = registry
        self.max_parallel_tasks = max_parallel_tasks
        self.on_batch = on_batch

    async def execute(self, tasks: list[Task]) -> list[AgentResult]:
        results: list[AgentResult] = []
        batches = make_batches(tasks, self.max_parallel_tasks)

        for index, batch in enumerate(batches, 1):
            if self.on_batch:
                self.on_batch(index, len(batches), len(batch))

            snapshot = self.registry.get_all()
            enriched = [task.enriched(existing_artifacts=snapshot) for task in batch]

            # siblings always settle before a failure is raised
            outcomes = await asyncio.gather(
                *(self.run_task(task) for task in enriched),
                return_exceptions=True,
            )

            failure = None
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    failure = failure or outcome
                    continue
                await self.merge_artifacts(outcome)
                results.append(outcome)

            if failure is not None:
                raise failure

        return results
