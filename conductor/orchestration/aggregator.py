"""
Result aggregation for one orchestrator run.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from ..agents.task import AgentResult
from ..artifacts import Artifact
from .planning import DecomposedPlan
from .router import RoutingDecision
from .state import TaskExecution, WorkflowMode


@dataclass
class OrchestratorResult:
    execution_id: str
    workflow: WorkflowMode
    results: list[AgentResult]
    final_output: str
    routing_decisions: list[RoutingDecision]
    execution_time: float
    artifacts: list[Artifact] = field(default_factory=list)
    plan_artifact: Optional[Artifact] = None
    plan: Optional[DecomposedPlan] = None
    executions: list[TaskExecution] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


class ResultAggregator:
    def aggregate(
        self,
        execution_id: str,
        workflow: WorkflowMode,
        workflow_results: list[AgentResult],
        fix_results: list[AgentResult],
        subtask_count: int,
        fix_rounds: int,
        routing_decisions: list[RoutingDecision],
        execution_time: float,
        artifacts: list[Artifact],
        executions: list[TaskExecution],
        plan: Optional[DecomposedPlan] = None,
        plan_artifact: Optional[Artifact] = None,
    ) -> OrchestratorResult:
        results = workflow_results + fix_results
        return OrchestratorResult(
            execution_id=execution_id,
            workflow=workflow,
            results=results,
            # fix rounds are traced in ``results`` but are not part of the answer
            final_output="\n\n".join(r.output for r in workflow_results),
            routing_decisions=list(routing_decisions),
            execution_time=execution_time,
            artifacts=artifacts,
            plan_artifact=plan_artifact,
            plan=plan,
            executions=executions,
            metadata={
                "subtask_count": subtask_count,
                "agents_used": len({r.agent_id for r in results}),
                "artifact_count": len(artifacts),
                "fix_rounds": fix_rounds,
            },
        )

    def format_for_display(self, result: OrchestratorResult) -> str:
        lines = [
            f"[Execution] {result.execution_id} ({result.workflow.value}, {result.execution_time:.1f}s)",
            "",
            "[Routing]",
        ]
        for decision in result.routing_decisions:
            lines.append(f"  {decision.agent_id} ({decision.confidence:.2f}): {decision.reason}")

        if result.artifacts:
            lines.append("")
            lines.append("[Artifacts]")
            for artifact in result.artifacts:
                lines.append(f"  {artifact.path} v{artifact.version}")

        lines.append("")
        lines.append("[Output]")
        lines.append(result.final_output)
        return "\n".join(lines)
