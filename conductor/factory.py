"""
Builds a ready-to-run orchestrator from configuration.
"""

from typing import Any, Optional

from .agents.presets import SUB_AGENT_PRESETS, SubAgentPreset, create_planner
from .agents.sub_agent import SubAgent
from .clients import ModelBackend, create_client
from .config import AgentSpec, Config
from .orchestration.orchestrator import ArtifactSink, Orchestrator
from .orchestration.router import TaskRouter, preset_rules
from .tools.base import ToolSet


def create_backends(config: Config) -> dict[str, ModelBackend]:
    backends = {}
    for name in config.get_configured_models():
        model = config.models[name]
        backends[name] = create_client(
            api_key=model.api_key,
            base_url=model.base_url,
            model_name=model.model_name,
            provider=model.provider,
        )
    return backends


def _pick(*values: Any) -> Any:
    return next((v for v in values if v is not None), None)


def build_sub_agent(spec: AgentSpec, backend: ModelBackend, tools: Optional[ToolSet] = None) -> SubAgent:
    preset: Optional[SubAgentPreset] = None
    if spec.preset:
        preset = SUB_AGENT_PRESETS.get(spec.preset)
        if preset is None:
            raise ValueError(f"Unknown agent preset '{spec.preset}' for agent '{spec.id}'")

    specialization = _pick(spec.specialization, preset and preset.specialization)
    if not specialization:
        raise ValueError(f"Agent '{spec.id}' needs a preset or a specialization")

    return SubAgent(
        spec.id,
        backend,
        specialization=specialization,
        capabilities=_pick(spec.capabilities, preset and preset.capabilities, []),
        priority=_pick(spec.priority, preset and preset.priority, 5),
        max_concurrent_tasks=_pick(spec.max_concurrent_tasks, preset and preset.max_concurrent_tasks, 1),
        tools=tools,
        name=_pick(spec.name, preset and preset.name, spec.id),
        role=preset.role if preset and preset.role else specialization,
        system_prompt=_pick(spec.system_prompt, preset and preset.system_prompt),
        max_iterations=spec.max_iterations,
        max_tokens=_pick(spec.max_tokens, preset and preset.max_tokens, 4096),
        temperature=_pick(spec.temperature, preset and preset.temperature, 0.0),
    )


def _build_router(config: Config, agent_ids: set[str]) -> TaskRouter:
    router_config = config.router
    if router_config.presets is None and not router_config.rules:
        # no routing configured: use the built-in rules for the agents that exist
        return TaskRouter(
            rules=[r for r in preset_rules() if r.agent_id in agent_ids],
            default_agent_id=router_config.default_agent_id,
            load_balancing=router_config.load_balancing,
            fallback_to_least_loaded=router_config.fallback_to_least_loaded,
        )
    return TaskRouter.from_config(router_config)


def create_orchestrator(
    config: Config,
    tools: Optional[ToolSet] = None,
    artifact_sink: Optional[ArtifactSink] = None,
    backends: Optional[dict[str, ModelBackend]] = None,
    diagnostics: Optional[ToolSet] = None,
) -> Orchestrator:
    if backends is None:
        backends = create_backends(config)
    backends = {name.lower(): backend for name, backend in backends.items()}

    def backend_for(model: Optional[str]) -> ModelBackend:
        key = (model or config.default_model).lower()
        if key not in backends:
            raise ValueError(f"Model '{key}' is not configured")
        return backends[key]

    specs = config.agents or [AgentSpec(id=preset_id, preset=preset_id) for preset_id in SUB_AGENT_PRESETS]
    agents = [build_sub_agent(spec, backend_for(spec.model), tools) for spec in specs]

    router = _build_router(config, {a.id for a in agents})
    for agent in agents:
        router.register_agent(agent)

    planner = None
    if config.planner.enabled:
        planner = create_planner(
            backend_for(config.planner.model),
            system_prompt=config.planner.system_prompt,
            max_tokens=config.planner.max_tokens,
        )

    return Orchestrator(
        config.orchestrator,
        router,
        planner=planner,
        artifact_sink=artifact_sink,
        diagnostics=diagnostics,
    )
