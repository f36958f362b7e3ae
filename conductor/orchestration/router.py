"""
Task router: picks the sub-agent best suited to run a task.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from ..agents.sub_agent import SubAgent
from ..agents.task import Task
from ..config import RouterConfig, RoutingRuleConfig
from ..errors import RoutingError


@dataclass
class RoutingRule:
    name: str
    agent_id: str
    pattern: Optional[Union[str, re.Pattern]] = None
    keywords: list[str] = field(default_factory=list)
    capability: Optional[str] = None
    priority: int = 5

    def __post_init__(self):
        if isinstance(self.priority, bool) or not isinstance(self.priority, int):
            raise ValueError(f"Rule '{self.name}': priority must be an integer")
        if not 0 <= self.priority <= 10:
            raise ValueError(f"Rule '{self.name}': priority must be between 0 and 10")
        if not (self.pattern or self.keywords or self.capability):
            raise ValueError(f"Rule '{self.name}' needs a pattern, keywords or a capability")
        if isinstance(self.pattern, str):
            self.pattern = re.compile(self.pattern, re.IGNORECASE)

    @classmethod
    def from_config(cls, config: RoutingRuleConfig) -> "RoutingRule":
        return cls(
            name=config.name,
            agent_id=config.agent_id,
            pattern=config.pattern,
            keywords=list(config.keywords),
            capability=config.capability,
            priority=config.priority,
        )

    def match(self, task: Task) -> list[str]:
        """Return the reasons this rule matches ``task``; empty when it does not."""
        reasons = []

        if self.pattern is not None and self.pattern.search(task.prompt):
            reasons.append(f"Pattern match: {self.pattern.pattern}")

        if self.keywords:
            prompt_lower = task.prompt.lower()
            hits = [kw for kw in self.keywords if kw.lower() in prompt_lower]
            if hits:
                reasons.append(f"Keywords: {', '.join(hits)}")

        if self.capability and task.metadata.get("required_capability") == self.capability:
            reasons.append(f"Capability: {self.capability}")

        return reasons


@dataclass(frozen=True)
class RoutingDecision:
    agent_id: str
    confidence: float
    reason: str
    matched_rules: tuple[str, ...] = ()


class TaskRouter:
    def __init__(
        self,
        rules: Optional[list[RoutingRule]] = None,
        default_agent_id: Optional[str] = None,
        load_balancing: bool = True,
        fallback_to_least_loaded: bool = True,
    ):
        self.rules = list(rules or [])
        self.default_agent_id = default_agent_id
        self.load_balancing = load_balancing
        self.fallback_to_least_loaded = fallback_to_least_loaded
        self._agents: dict[str, SubAgent] = {}

    @classmethod
    def from_config(cls, config: RouterConfig) -> "TaskRouter":
        rules = preset_rules(config.presets) if config.presets else []
        rules.extend(RoutingRule.from_config(rule) for rule in config.rules)
        return cls(
            rules=rules,
            default_agent_id=config.default_agent_id,
            load_balancing=config.load_balancing,
            fallback_to_least_loaded=config.fallback_to_least_loaded,
        )

    def add_rule(self, rule: RoutingRule):
        self.rules.append(rule)

    def register_agent(self, agent: SubAgent):
        self._agents[agent.id] = agent

    def unregister_agent(self, agent_id: str):
        self._agents.pop(agent_id, None)

    def get_agent(self, agent_id: str) -> Optional[SubAgent]:
        return self._agents.get(agent_id)

    def get_agents(self) -> list[SubAgent]:
        return list(self._agents.values())

    def route(self, task: Task) -> RoutingDecision:
        explicit = self._agents.get(task.metadata.get("agent_id") or "")
        # a busy explicit agent falls through to the other tiers
        if explicit is not None and explicit.can_handle(task):
            return RoutingDecision(explicit.id, 1.0, "Explicitly assigned agent")

        decision = self._route_by_rules(task)
        if decision:
            return decision

        if self.fallback_to_least_loaded:
            candidates = [a for a in self._agents.values() if a.can_handle(task)]
            if candidates:
                # min() keeps the first registered agent on ties
                agent = min(candidates, key=lambda a: a.get_load().utilization)
                return RoutingDecision(agent.id, 0.5, "Least loaded agent fallback")

        default_agent = self._agents.get(self.default_agent_id) if self.default_agent_id else None
        if default_agent is not None and default_agent.can_handle(task):
            return RoutingDecision(default_agent.id, 0.3, "Default agent")

        for agent in self._agents.values():
            if agent.can_handle(task):
                return RoutingDecision(
                    agent.id, 0.1, "No routing rules matched, using first available agent"
                )

        raise RoutingError(task.id)

    def _route_by_rules(self, task: Task) -> Optional[RoutingDecision]:
        scores: dict[str, int] = {}
        reasons: dict[str, list[str]] = {}
        matched: dict[str, list[str]] = {}

        for rule in self.rules:
            rule_reasons = rule.match(task)
            if not rule_reasons:
                continue
            scores[rule.agent_id] = scores.get(rule.agent_id, 0) + rule.priority
            reasons.setdefault(rule.agent_id, []).extend(rule_reasons)
            matched.setdefault(rule.agent_id, []).append(rule.name)

        best_id = None
        best_score = -1.0

        for agent_id, score in scores.items():
            if score <= 0:
                continue
            agent = self._agents.get(agent_id)
            if agent is None or not agent.can_handle(task):
                continue

            adjusted = float(score)
            if self.load_balancing:
                adjusted = score * (1 - agent.get_load().utilization * 0.5)

            if adjusted > best_score:
                best_score = adjusted
                best_id = agent_id

        if best_id is None:
            return None

        return RoutingDecision(
            agent_id=best_id,
            confidence=min(best_score / 10, 1.0),
            reason="; ".join(reasons[best_id]) or "Rule-based routing",
            matched_rules=tuple(matched[best_id]),
        )

    def get_stats(self) -> dict[str, Any]:
        agents = []
        for agent in self._agents.values():
            load = agent.get_load()
            agents.append({
                "id": agent.id,
                "name": agent.name,
                "specialization": agent.specialization,
                "load": {"active": load.active, "max": load.max, "utilization": load.utilization},
            })
        return {"total_agents": len(self._agents), "agents": agents}


RULE_PRESETS: dict[str, RoutingRule] = {
    "code_generation": RoutingRule(
        name="Code Generation",
        keywords=["generate", "create", "build", "implement", "code", "function", "component"],
        agent_id="code-generator",
        priority=8,
    ),
    "testing": RoutingRule(
        name="Testing",
        keywords=["test", "spec", "coverage", "assert", "mock"],
        pattern=r"test|spec|coverage",
        agent_id="tester",
        priority=6,
    ),
    "code_review": RoutingRule(
        name="Code Review",
        keywords=["review", "analyze", "check", "audit", "security", "optimize"],
        pattern=r"review|analyze|check",
        agent_id="code-reviewer",
        priority=7,
    ),
    "design": RoutingRule(
        name="UI Design",
        keywords=["design", "style", "ui", "ux", "layout", "tailwind", "css"],
        pattern=r"design|style|layout|ui",
        agent_id="ui-designer",
        priority=5,
    ),
    "architecture": RoutingRule(
        name="Architecture",
        keywords=["architecture", "structure", "pattern", "design pattern", "scalability"],
        pattern=r"architect|structure|pattern",
        agent_id="architect",
        priority=9,
    ),
    "debugging": RoutingRule(
        name="Debugging",
        keywords=["debug", "fix", "error", "bug", "issue", "problem", "troubleshoot"],
        pattern=r"debug|fix|error|bug",
        agent_id="debugger",
        priority=10,
    ),
    "quality_assurance": RoutingRule(
        name="Quality Assurance",
        keywords=["qa", "quality", "review all", "validate", "check quality", "assess"],
        pattern=r"quality|validate|assess|review all",
        agent_id="qa-agent",
        priority=8,
    ),
    "finalization": RoutingRule(
        name="Finalization",
        keywords=["finalize", "integrate", "complete", "wrap up", "finish", "final"],
        pattern=r"finaliz|integrat|complet|finish|final",
        agent_id="finalizer",
        priority=9,
    ),
}


def preset_rules(names: Optional[list[str]] = None) -> list[RoutingRule]:
    """Routing rules for the named presets (all presets by default)."""
    if names is None:
        return list(RULE_PRESETS.values())
    return [RULE_PRESETS[name] for name in names]
