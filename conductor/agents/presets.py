"""
Sub-agent presets for web application builds.
Each preset describes a specialization; the model backing it is chosen at build time.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..clients.base import ModelBackend
from ..tools.base import ToolSet
from .agent import Agent
from .sub_agent import SubAgent


@dataclass
class SubAgentPreset:
    id: str
    name: str
    specialization: str
    capabilities: list[str]
    system_prompt: str
    role: str = ""
    priority: int = 5
    temperature: float = 0.3
    max_tokens: int = 4096
    max_concurrent_tasks: int = 1
    tags: list[str] = field(default_factory=list)


SUB_AGENT_PRESETS: dict[str, SubAgentPreset] = {
    "code-generator": SubAgentPreset(
        id="code-generator",
        name="Code Generator",
        role="code-generation",
        specialization="code-generation",
        capabilities=["react", "typescript", "html", "css", "javascript"],
        system_prompt=(
            "You are an expert code generator specialized in React, TypeScript, and modern "
            "web development. Generate clean, production-ready code."
        ),
        priority=8,
        temperature=0.3,
    ),
    "tester": SubAgentPreset(
        id="tester",
        name="Test Engineer",
        role="testing",
        specialization="testing",
        capabilities=["unit-tests", "integration-tests", "vitest", "jest"],
        system_prompt="You are a testing specialist. Write comprehensive, meaningful tests with good coverage.",
        priority=6,
        temperature=0.2,
    ),
    "code-reviewer": SubAgentPreset(
        id="code-reviewer",
        name="Code Reviewer",
        role="code-review",
        specialization="code-review",
        capabilities=["security", "performance", "best-practices"],
        system_prompt="You are a senior code reviewer. Identify bugs, security issues, and suggest improvements.",
        priority=7,
        temperature=0.4,
    ),
    "ui-designer": SubAgentPreset(
        id="ui-designer",
        name="UI Designer",
        role="design",
        specialization="ui-design",
        capabilities=["tailwind", "css", "responsive-design", "accessibility"],
        system_prompt=(
            "You are a UI/UX designer expert in Tailwind CSS and modern design systems. "
            "Create beautiful, accessible interfaces."
        ),
        priority=5,
        temperature=0.7,
    ),
    "architect": SubAgentPreset(
        id="architect",
        name="Software Architect",
        role="architecture",
        specialization="architecture",
        capabilities=["system-design", "scalability", "patterns"],
        system_prompt="You are a software architect. Design scalable, maintainable system architectures.",
        priority=9,
        temperature=0.5,
    ),
    "debugger": SubAgentPreset(
        id="debugger",
        name="Debugger",
        role="debugging",
        specialization="debugging",
        capabilities=["error-analysis", "troubleshooting", "performance-profiling"],
        system_prompt="You are a debugging expert. Analyze errors, identify root causes, and suggest fixes.",
        priority=10,
        temperature=0.3,
    ),
    "qa-agent": SubAgentPreset(
        id="qa-agent",
        name="Quality Assurance Agent",
        role="quality-assurance",
        specialization="quality-assurance",
        capabilities=["code-review", "testing", "validation", "quality-control"],
        system_prompt=(
            "You are a QA specialist. Review all outputs from previous agents, identify issues, "
            "gaps, or improvements needed. Provide a comprehensive quality assessment."
        ),
        priority=8,
        temperature=0.4,
    ),
    "finalizer": SubAgentPreset(
        id="finalizer",
        name="Finalizer Agent",
        role="finalizer",
        specialization="finalization",
        capabilities=["integration", "cleanup", "documentation", "final-review"],
        system_prompt=(
            "You are the finalizer agent. Review all previous work and provide a CONCISE summary "
            "(1-2 paragraphs maximum) of what was accomplished. Focus on the key deliverables "
            "and outcomes. Be brief and clear."
        ),
        priority=9,
        temperature=0.3,
        max_tokens=512,
    ),
}


PLANNER_SYSTEM_PROMPT = (
    "You are a planning agent that decomposes complex web-app builder tasks into atomic subtasks."
)


def get_preset(preset_id: str) -> SubAgentPreset:
    return SUB_AGENT_PRESETS[preset_id]


def get_presets() -> dict[str, SubAgentPreset]:
    return SUB_AGENT_PRESETS


def get_preset_by_name(name: str) -> Optional[SubAgentPreset]:
    name_lower = name.lower()
    for preset in SUB_AGENT_PRESETS.values():
        if name_lower in (preset.id, preset.name.lower(), preset.role, preset.specialization):
            return preset
    return None


def create_sub_agent(
    preset_id: str,
    backend: ModelBackend,
    tools: Optional[ToolSet] = None,
    max_iterations: int = 10,
) -> SubAgent:
    preset = get_preset(preset_id)
    return SubAgent(
        preset.id,
        backend,
        specialization=preset.specialization,
        capabilities=preset.capabilities,
        priority=preset.priority,
        max_concurrent_tasks=preset.max_concurrent_tasks,
        tools=tools,
        name=preset.name,
        role=preset.role or preset.specialization,
        system_prompt=preset.system_prompt,
        max_iterations=max_iterations,
        max_tokens=preset.max_tokens,
        temperature=preset.temperature,
    )


def create_planner(backend: ModelBackend, system_prompt: Optional[str] = None, max_tokens: int = 1024) -> Agent:
    return Agent(
        "planner",
        backend,
        name="Planning Agent",
        role="planner",
        system_prompt=system_prompt or PLANNER_SYSTEM_PROMPT,
        max_tokens=max_tokens,
        temperature=0.2,
    )
