"""
Orchestrator: plans an objective, runs the resulting tasks on routed sub-agents
and reconciles the artifacts they produce.
"""

import asyncio
import inspect
import time
import uuid
from typing import Any, Awaitable, Callable, Optional, Union

from .. import stats
from ..agents.agent import Agent
from ..agents.task import AgentResult, Task
from ..artifacts import (
    Artifact,
    ArtifactDraft,
    ArtifactMetadata,
    ArtifactRegistry,
    ArtifactType,
    create_plan_draft,
)
from ..config import OrchestratorConfig
from ..errors import OrchestratorError, RoutingError, TaskTimeoutError
from ..tools.base import ToolSet
from ..ui import ExecutionMonitor, ui
from .aggregator import OrchestratorResult, ResultAggregator
from .diagnostics import check_for_errors, format_errors_for_fix
from .parallel import ParallelWorkflow
from .planning import (
    PLANNING_PROMPT,
    DecomposedPlan,
    find_referenced_plan,
    format_plan_markdown,
    is_complex_plan,
    parse_plan,
    plan_to_tasks,
    sanitize_plan_name,
)
from .router import RoutingDecision, TaskRouter
from .sequential import ConditionalWorkflow, SequentialWorkflow
from .state import ExecutionTracker, WorkflowMode

ArtifactSink = Callable[[Artifact], Union[None, Awaitable[None]]]

NO_ERRORS_MARKER = "no errors found"

ERROR_CHECK_PROMPT = """Check the project for type errors, build errors and runtime errors.
Use the available tools to inspect the files and logs you need.
{diagnostics}
If the project is clean, reply with "No errors found". Otherwise list every error
with its file, location and a short description."""

ERROR_FIX_PROMPT = """Fix the following errors. Edit the affected files with the available tools
and keep unrelated code unchanged.

{errors}"""


class Orchestrator:
    def __init__(
        self,
        config: OrchestratorConfig,
        router: TaskRouter,
        planner: Optional[Agent] = None,
        artifact_sink: Optional[ArtifactSink] = None,
        diagnostics: Optional[ToolSet] = None,
    ):
        self.config = config
        self.router = router
        self.planner = planner
        self.artifact_sink = artifact_sink
        self.diagnostics = diagnostics
        self.registry = ArtifactRegistry()
        self.tracker = ExecutionTracker()
        self.aggregator = ResultAggregator()
        self._lock = asyncio.Lock()

    async def execute(
        self,
        objective: str,
        workflow: Union[WorkflowMode, str] = WorkflowMode.SEQUENTIAL,
        *,
        context: Optional[dict[str, Any]] = None,
        metadata: Optional[dict[str, Any]] = None,
        tasks: Optional[list[Task]] = None,
        existing_artifacts: Optional[list[Artifact]] = None,
    ) -> OrchestratorResult:
        mode = WorkflowMode(workflow)
        execution_id = uuid.uuid4().hex[:12]

        async with self._lock:
            stats.reset_stats()
            try:
                return await self._execute(
                    execution_id,
                    objective,
                    mode,
                    context or {},
                    metadata or {},
                    tasks,
                    existing_artifacts or [],
                )
            except Exception as e:
                if self.config.verbose:
                    ui.print_error(str(e))
                raise OrchestratorError(
                    f"Orchestrator execution failed: {e}", execution_id=execution_id
                ) from e

    async def _execute(
        self,
        execution_id: str,
        objective: str,
        mode: WorkflowMode,
        context: dict[str, Any],
        metadata: dict[str, Any],
        tasks: Optional[list[Task]],
        existing_artifacts: list[Artifact],
    ) -> OrchestratorResult:
        start = time.monotonic()
        routing_decisions: list[RoutingDecision] = []
        plan: Optional[DecomposedPlan] = None
        plan_artifact: Optional[Artifact] = None

        self.registry.clear()
        for artifact in existing_artifacts:
            self.registry.restore(artifact)

        if tasks:
            subtasks = list(tasks)
        elif self.planner is not None and mode != WorkflowMode.PARALLEL:
            plan = await self._create_plan(execution_id, objective, context, metadata)
            subtasks = plan_to_tasks(plan, execution_id, context, metadata)
            if self.config.generate_plan_artifact and plan.structured and is_complex_plan(plan):
                plan_artifact = await self._store_plan(execution_id, objective, plan)
        else:
            subtasks = []

        if not subtasks:
            subtasks = [Task(id=f"{execution_id}-main", prompt=objective, context=dict(context), metadata=dict(metadata))]

        if self.config.verbose:
            ui.print_phase("execution", f"{len(subtasks)} task(s), {mode.value} workflow")

        async def run_task(task: Task) -> AgentResult:
            return await self._execute_task(task, routing_decisions)

        results = await self._build_workflow(mode, run_task).execute(subtasks)

        fix_results, fix_rounds = await self._run_error_fix_loop(execution_id, routing_decisions)

        result = self.aggregator.aggregate(
            execution_id=execution_id,
            workflow=mode,
            workflow_results=results,
            fix_results=fix_results,
            subtask_count=len(subtasks),
            fix_rounds=fix_rounds,
            routing_decisions=routing_decisions,
            execution_time=time.monotonic() - start,
            artifacts=self.registry.get_all(),
            executions=self.tracker.snapshot(),
            plan=plan,
            plan_artifact=plan_artifact and self.registry.get(plan_artifact.id),
        )

        if self.config.verbose:
            ui.print_phase("completed")
            ui.print_result(result)
        return result

    def _build_workflow(self, mode: WorkflowMode, run_task):
        if mode == WorkflowMode.PARALLEL:
            return ParallelWorkflow(
                run_task,
                self._merge_artifacts,
                self.registry,
                max_parallel_tasks=self.config.max_parallel_tasks,
                on_batch=ui.print_batch if self.config.verbose else None,
            )

        workflow_cls = ConditionalWorkflow if mode == WorkflowMode.CONDITIONAL else SequentialWorkflow
        return workflow_cls(
            run_task,
            self._merge_artifacts,
            self.registry,
            self._role_of,
            excerpt_chars=self.config.context_excerpt_chars,
        )

    def _role_of(self, agent_id: str) -> str:
        agent = self.router.get_agent(agent_id)
        return agent.role if agent else agent_id

    async def _create_plan(
        self,
        execution_id: str,
        objective: str,
        context: dict[str, Any],
        metadata: dict[str, Any],
    ) -> DecomposedPlan:
        if self.config.verbose:
            ui.print_phase("planning", "Decomposing objective into tasks...")

        # each run plans from a clean conversation
        self.planner.reset()
        planning_task = Task(
            id=f"{execution_id}-planning",
            prompt=PLANNING_PROMPT.format(objective=objective),
            context=dict(context),
            metadata={**metadata, "type": "planning"},
        )
        result = await self.planner.execute(planning_task)
        plan = parse_plan(result.output, objective, execution_id)

        if self.config.verbose:
            ui.print_plan(plan)
        return plan

    async def _store_plan(self, execution_id: str, objective: str, plan: DecomposedPlan) -> Artifact:
        content = format_plan_markdown(plan)
        description = "Execution plan generated by planning agent"
        referenced = find_referenced_plan(objective, self.registry.get_plans())

        if referenced:
            draft = ArtifactDraft(
                filename=referenced.filename,
                path=referenced.path,
                content=content,
                type=ArtifactType.PLAN,
                mime_type="text/markdown",
                metadata=ArtifactMetadata(
                    agent_id=self.planner.id,
                    agent_role=self.planner.role,
                    task_id=execution_id,
                    description=description,
                ),
            )
        else:
            filename = sanitize_plan_name(plan.name or "") or f"plan-{execution_id}"
            draft = create_plan_draft(
                filename,
                content,
                description=description,
                agent_id=self.planner.id,
                agent_role=self.planner.role,
                task_id=execution_id,
            )

        return await self._store_artifact(draft)

    async def _store_artifact(self, draft: Union[ArtifactDraft, Artifact]) -> Artifact:
        artifact = self.registry.add_or_update(draft)
        if self.artifact_sink is not None:
            try:
                outcome = self.artifact_sink(artifact)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                ui.print_warning(f"Artifact sink failed for {artifact.path}: {e}")
        return artifact

    async def _merge_artifacts(self, result: AgentResult) -> list[Artifact]:
        return [await self._store_artifact(draft) for draft in result.artifacts]

    async def _execute_task(self, task: Task, routing_decisions: list[RoutingDecision]) -> AgentResult:
        """Route and run one task, retrying failed attempts with a linearly growing delay."""
        attempt = 0

        while True:
            execution = None
            try:
                decision = self.router.route(task)
                routing_decisions.append(decision)
                if self.config.verbose:
                    ui.print_routing(task.id, decision)

                agent = self.router.get_agent(decision.agent_id)
                if agent is None:
                    raise RoutingError(task.id, f"Agent {decision.agent_id} not found")

                execution = self.tracker.start(task.id, agent.id, task.prompt, retries=attempt)
                deadline = asyncio.timeout(self.config.task_timeout)
                try:
                    async with deadline:
                        result = await agent.execute(task, on_progress=execution.update_progress)
                except TimeoutError as e:
                    if deadline.expired():
                        raise TaskTimeoutError(task.id, self.config.task_timeout) from e
                    raise

                self.tracker.complete(execution, artifact_count=len(result.artifacts))
                if self.config.verbose:
                    ui.print_task_done(task.id, agent.id, result.iterations, len(result.artifacts))
                return result

            except Exception as e:
                attempt += 1
                if execution is not None:
                    self.tracker.fail(execution, e)

                if not self.config.retry_failed_tasks or attempt > self.config.max_retries:
                    raise

                delay = self.config.retry_delay * attempt
                ui.print_warning(
                    f"Task {task.id} failed: {e}. Retrying in {delay:g}s "
                    f"({attempt}/{self.config.max_retries})"
                )
                await asyncio.sleep(delay)

    async def _run_error_fix_loop(
        self,
        execution_id: str,
        routing_decisions: list[RoutingDecision],
    ) -> tuple[list[AgentResult], int]:
        debug_id = self.config.debug_agent_id
        if not self.config.error_fix_loop or self.router.get_agent(debug_id) is None:
            return [], 0

        if self.config.verbose:
            ui.print_phase("error-fix", f"Checking for errors with {debug_id}...")

        results: list[AgentResult] = []
        rounds = 0

        for round_number in range(1, self.config.max_fix_rounds + 1):
            rounds = round_number
            try:
                diagnostics = ""
                if self.diagnostics is not None:
                    report = await check_for_errors(self.diagnostics)
                    diagnostics = f"\nAutomated checks: {report.summary}\n{format_errors_for_fix(report)}\n"

                check = await self._execute_task(
                    self._fix_loop_task(
                        f"{execution_id}-error-check-{round_number}",
                        ERROR_CHECK_PROMPT.format(diagnostics=diagnostics),
                        execution_id,
                        "error_check",
                    ),
                    routing_decisions,
                )
                results.append(check)
                await self._merge_artifacts(check)

                if NO_ERRORS_MARKER in check.output.lower():
                    break

                fix = await self._execute_task(
                    self._fix_loop_task(
                        f"{execution_id}-error-fix-{round_number}",
                        ERROR_FIX_PROMPT.format(errors=check.output),
                        execution_id,
                        "error_fix",
                    ),
                    routing_decisions,
                )
                results.append(fix)
                await self._merge_artifacts(fix)

            except Exception as e:
                ui.print_warning(f"Error-fix loop stopped in round {round_number}: {e}")
                break

        return results, rounds

    def _fix_loop_task(self, task_id: str, prompt: str, parent_id: str, kind: str) -> Task:
        return Task(
            id=task_id,
            prompt=prompt,
            parent_task_id=parent_id,
            metadata={"agent_id": self.config.debug_agent_id, "type": kind},
            existing_artifacts=tuple(self.registry.get_all()),
        )

    def monitor(self) -> ExecutionMonitor:
        return ExecutionMonitor(self.tracker)

    def get_stats(self) -> dict[str, Any]:
        return {
            "active_tasks": self.tracker.active_count,
            "total_executions": len(self.tracker),
            "router_stats": self.router.get_stats(),
            "model_calls": stats.get_stats().total_calls,
            "calls_by_agent": dict(stats.get_stats().calls_by_agent),
            "executions": self.tracker.snapshot(),
        }

    def clear_history(self):
        self.tracker.clear()
