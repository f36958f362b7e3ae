"""
Orchestration: planning, routing, workflow execution and the error-fix loop.
"""

from .aggregator import OrchestratorResult, ResultAggregator
from .diagnostics import ErrorReport, check_for_errors, format_errors_for_fix
from .orchestrator import ArtifactSink, Orchestrator
from .parallel import ParallelWorkflow
from .planning import (
    DecomposedPlan,
    PlanStep,
    find_referenced_plan,
    format_plan_markdown,
    is_complex_plan,
    parse_plan,
    plan_to_tasks,
    sanitize_plan_name,
)
from .router import RULE_PRESETS, RoutingDecision, RoutingRule, TaskRouter, preset_rules
from .sequential import ConditionalWorkflow, SequentialWorkflow
from .state import ExecutionTracker, TaskExecution, TaskStatus, WorkflowMode

__all__ = [
    "ArtifactSink",
    "ConditionalWorkflow",
    "DecomposedPlan",
    "ErrorReport",
    "ExecutionTracker",
    "Orchestrator",
    "OrchestratorResult",
    "ParallelWorkflow",
    "PlanStep",
    "RULE_PRESETS",
    "ResultAggregator",
    "RoutingDecision",
    "RoutingRule",
    "SequentialWorkflow",
    "TaskExecution",
    "TaskRouter",
    "TaskStatus",
    "WorkflowMode",
    "check_for_errors",
    "find_referenced_plan",
    "format_errors_for_fix",
    "format_plan_markdown",
    "is_complex_plan",
    "parse_plan",
    "plan_to_tasks",
    "preset_rules",
    "sanitize_plan_name",
]
