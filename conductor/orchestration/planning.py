"""
Plan decomposition: prompt, two-stage parsing, complexity check and plan references.
"""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from ..agents.task import Task
from ..artifacts import Artifact

PLANNING_PROMPT = """You are a planning agent. Decompose the following objective into a structured plan.

**Objective:** {objective}

Provide:
1. A clear strategy statement explaining the overall approach
2. A breakdown of 3-7 specific tasks assigned to specialized agent roles
3. For each task, specify: agent role, description, and complexity (Low/Medium/High)

Format your response as valid JSON following this structure:
{{
  "name": "short-plan-name",
  "objective": "...",
  "strategy": "...",
  "tasks": [
    {{
      "id": "task-1",
      "agentRole": "Code Generator",
      "description": "...",
      "complexity": "Medium",
      "estimatedTime": "5-10 minutes"
    }}
  ]
}}"""

COMPLEX_LEVELS = {"medium", "high"}

_NUMBER_PREFIX = re.compile(r"^\d+\.\s*")
_DASH_PREFIX = re.compile(r"^-\s*")
_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}-")
_NAME_MENTION = re.compile(r"@([a-z0-9-]+)", re.IGNORECASE)
_ID_MENTION = re.compile(r"@\[([^\]]+)\]")


@dataclass
class PlanStep:
    id: str
    description: str
    agent_role: str = ""
    complexity: Optional[str] = None
    estimated_time: Optional[str] = None


@dataclass
class DecomposedPlan:
    objective: str
    strategy: str = ""
    tasks: list[PlanStep] = field(default_factory=list)
    name: Optional[str] = None
    # False when the planner output was not valid JSON and lines were used instead
    structured: bool = True

    def roles(self) -> set[str]:
        return {t.agent_role for t in self.tasks if t.agent_role}

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "objective": self.objective,
            "strategy": self.strategy,
            "tasks": [
                {
                    "id": t.id,
                    "agentRole": t.agent_role,
                    "description": t.description,
                    "complexity": t.complexity,
                    "estimatedTime": t.estimated_time,
                }
                for t in self.tasks
            ],
        }


def _optional_text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _parse_json_plan(output: str, objective: str) -> DecomposedPlan:
    json_match = re.search(r"\{[\s\S]*\}", output)
    if not json_match:
        raise ValueError("No JSON object in planner output")

    data = json.loads(json_match.group())
    if not isinstance(data, dict) or not isinstance(data.get("tasks"), list):
        raise ValueError("Plan JSON has no task list")

    steps = []
    for i, item in enumerate(data["tasks"]):
        if not isinstance(item, dict):
            raise ValueError(f"Plan task {i} is not an object")
        description = item.get("description") or item.get("task")
        if not description:
            raise ValueError(f"Plan task {i} has no description")
        steps.append(PlanStep(
            id=str(item.get("id") or f"task-{i + 1}"),
            description=str(description),
            agent_role=str(item.get("agentRole") or item.get("agent_role") or ""),
            complexity=_optional_text(item.get("complexity")),
            estimated_time=_optional_text(item.get("estimatedTime") or item.get("estimated_time")),
        ))

    if not steps:
        raise ValueError("Plan JSON has an empty task list")

    return DecomposedPlan(
        objective=str(data.get("objective") or objective),
        strategy=str(data.get("strategy") or ""),
        tasks=steps,
        name=_optional_text(data.get("name")),
    )


def _parse_line_plan(output: str, objective: str, parent_id: str) -> DecomposedPlan:
    steps = []
    for line in output.split("\n"):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        prompt = _DASH_PREFIX.sub("", _NUMBER_PREFIX.sub("", line))
        steps.append(PlanStep(id=f"{parent_id}-{len(steps)}", description=prompt))

    return DecomposedPlan(objective=objective, tasks=steps, structured=False)


def parse_plan(output: str, objective: str, parent_id: str) -> DecomposedPlan:
    """Parse planner output.

    The first JSON object in ``output`` is decoded as the plan. If there is none,
    or it does not describe a task list, every non-empty line that is not a
    Markdown heading becomes one step, with leading ``1.`` or ``-`` markers removed.
    """
    try:
        return _parse_json_plan(output, objective)
    except (ValueError, TypeError):
        # json.JSONDecodeError is a ValueError
        return _parse_line_plan(output, objective, parent_id)


def is_complex_plan(plan: DecomposedPlan) -> bool:
    if len(plan.tasks) >= 3:
        return True
    if len(plan.roles()) > 1:
        return any((t.complexity or "").lower() in COMPLEX_LEVELS for t in plan.tasks)
    return False


def format_plan_markdown(
    plan: DecomposedPlan,
    title: str = "Execution Plan",
    timestamp: Optional[datetime] = None,
) -> str:
    timestamp = timestamp or datetime.now(timezone.utc)

    lines = [
        f"# {title}",
        "",
        f"**Generated:** {timestamp.isoformat()}",
        "",
        "## Objective",
        "",
        plan.objective,
        "",
        "## Strategy",
        "",
        plan.strategy,
        "",
        "## Task Breakdown",
    ]
    for i, step in enumerate(plan.tasks, 1):
        lines.extend([
            "",
            f"### {i}. {step.agent_role or 'Agent'}",
            "",
            f"- **Task ID:** `{step.id}`",
            f"- **Description:** {step.description}",
        ])
        if step.complexity:
            lines.append(f"- **Complexity:** {step.complexity}")
        if step.estimated_time:
            lines.append(f"- **Estimated time:** {step.estimated_time}")

    lines.extend([
        "",
        "---",
        "",
        "*This plan was generated by the orchestrator and will be executed by specialized sub-agents.*",
        "",
    ])
    return "\n".join(lines)


def sanitize_plan_name(name: str) -> str:
    name = re.sub(r"\s+", "-", name.lower())
    name = re.sub(r"[^a-z0-9-]", "", name)
    name = re.sub(r"-+", "-", name)
    return name.strip("-")


def plan_stem(filename: str) -> str:
    """Mention-friendly name of a plan file: no date prefix, no ``.md``."""
    name = filename.rsplit("/", 1)[-1]
    if name.lower().endswith(".md"):
        name = name[:-3]
    name = _DATE_PREFIX.sub("", name)
    return sanitize_plan_name(name)


def find_referenced_plan(objective: str, plans: list[Artifact]) -> Optional[Artifact]:
    """Find the plan an objective refers to.

    Accepts ``@[artifact-id]``, ``@plan-name`` (exact name, then id, then partial
    name) or the plan name appearing in the objective text.
    """
    if not plans:
        return None

    by_id = {p.id: p for p in plans}
    for identifier in _ID_MENTION.findall(objective):
        if identifier in by_id:
            return by_id[identifier]

    for identifier in _NAME_MENTION.findall(objective):
        wanted = identifier.lower()
        for matcher in (
            lambda p: plan_stem(p.filename) == wanted,
            lambda p: p.id == identifier,
            lambda p: wanted in plan_stem(p.filename),
        ):
            plan = next((p for p in plans if matcher(p)), None)
            if plan:
                return plan

    sanitized_objective = sanitize_plan_name(objective)
    for plan in plans:
        stem = plan_stem(plan.filename)
        if stem and stem in sanitized_objective:
            return plan

    return None


def plan_to_tasks(
    plan: DecomposedPlan,
    parent_id: str,
    context: Optional[dict[str, Any]] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> list[Task]:
    tasks = []
    for step in plan.tasks:
        task_metadata = dict(metadata or {})
        if plan.structured:
            task_metadata.update({
                "agent_role": step.agent_role,
                "complexity": step.complexity,
                "estimated_time": step.estimated_time,
            })
        tasks.append(Task(
            id=step.id,
            prompt=step.description,
            parent_task_id=parent_id,
            context=dict(context or {}),
            metadata=task_metadata,
        ))
    return tasks
