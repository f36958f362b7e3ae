"""
Configuration management for Conductor.
Supports a ~/.conductor YAML file for model endpoints, agents, routing and orchestration settings.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import yaml


@dataclass
class ModelConfig:
    name: str
    provider: str = "openai"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model_name: Optional[str] = None
    max_tokens: Optional[int] = None

    def is_configured(self) -> bool:
        return bool(self.api_key and self.base_url and self.model_name)


@dataclass
class RoutingRuleConfig:
    name: str
    agent_id: str
    pattern: Optional[str] = None
    keywords: list[str] = field(default_factory=list)
    capability: Optional[str] = None
    priority: int = 5


@dataclass
class RouterConfig:
    rules: list[RoutingRuleConfig] = field(default_factory=list)
    # names of built-in rule presets to load before ``rules``
    presets: Optional[list[str]] = None
    default_agent_id: Optional[str] = None
    load_balancing: bool = True
    fallback_to_least_loaded: bool = True


@dataclass
class OrchestratorConfig:
    max_parallel_tasks: int = 5
    task_timeout: float = 300.0
    retry_failed_tasks: bool = True
    max_retries: int = 2
    retry_delay: float = 1.0
    generate_plan_artifact: bool = True
    context_excerpt_chars: int = 500
    error_fix_loop: bool = True
    max_fix_rounds: int = 5
    debug_agent_id: str = "debugger"
    verbose: bool = False

    def __post_init__(self):
        if self.max_parallel_tasks < 1:
            raise ValueError("max_parallel_tasks must be positive")
        if self.task_timeout <= 0:
            raise ValueError("task_timeout must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must not be negative")
        if self.context_excerpt_chars < 1:
            raise ValueError("context_excerpt_chars must be positive")
        if self.max_fix_rounds < 0:
            raise ValueError("max_fix_rounds must not be negative")


@dataclass
class AgentSpec:
    """A sub-agent to build: a preset id, optionally overridden field by field."""

    id: str
    preset: Optional[str] = None
    model: Optional[str] = None
    name: Optional[str] = None
    specialization: Optional[str] = None
    capabilities: Optional[list[str]] = None
    priority: Optional[int] = None
    max_concurrent_tasks: Optional[int] = None
    system_prompt: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    max_iterations: int = 10


@dataclass
class PlannerConfig:
    enabled: bool = True
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    max_tokens: int = 1024


@dataclass
class Config:
    models: dict[str, ModelConfig] = field(default_factory=dict)
    default_model: str = "default"
    agents: list[AgentSpec] = field(default_factory=list)
    planner: PlannerConfig = field(default_factory=PlannerConfig)
    router: RouterConfig = field(default_factory=RouterConfig)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)

    def get_model_config(self, name: Optional[str] = None) -> Optional[ModelConfig]:
        return self.models.get((name or self.default_model).lower())

    def get_configured_models(self) -> list[str]:
        return [name for name, model in self.models.items() if model.is_configured()]


CONFIG_FILE_NAME = ".conductor"
CONFIG_ENV_VAR = "CONDUCTOR_CONFIG"


def get_config_path() -> Path:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / CONFIG_FILE_NAME


def load_config(path: Optional[Union[str, Path]] = None) -> Config:
    config_path = Path(path) if path else get_config_path()
    if not config_path.exists():
        return Config()

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return parse_config(data)


def _parse_agent(data: Union[str, dict]) -> AgentSpec:
    if isinstance(data, str):
        return AgentSpec(id=data, preset=data)
    if "id" not in data and "preset" not in data:
        raise ValueError(f"Agent entry needs an id or a preset: {data!r}")
    return AgentSpec(
        id=data.get("id") or data["preset"],
        preset=data.get("preset"),
        model=data.get("model"),
        name=data.get("name"),
        specialization=data.get("specialization"),
        capabilities=data.get("capabilities"),
        priority=data.get("priority"),
        max_concurrent_tasks=data.get("max_concurrent_tasks"),
        system_prompt=data.get("system_prompt"),
        temperature=data.get("temperature"),
        max_tokens=data.get("max_tokens"),
        max_iterations=data.get("max_iterations", 10),
    )


def _parse_router(data: dict) -> RouterConfig:
    rules = []
    for rule in data.get("rules") or []:
        if "name" not in rule or "agent_id" not in rule:
            raise ValueError(f"Routing rule needs a name and an agent_id: {rule!r}")
        rules.append(RoutingRuleConfig(
            name=rule["name"],
            agent_id=rule["agent_id"],
            pattern=rule.get("pattern"),
            keywords=list(rule.get("keywords") or []),
            capability=rule.get("capability"),
            priority=rule.get("priority", 5),
        ))

    return RouterConfig(
        rules=rules,
        presets=data.get("presets"),
        default_agent_id=data.get("default_agent_id"),
        load_balancing=data.get("load_balancing", True),
        fallback_to_least_loaded=data.get("fallback_to_least_loaded", True),
    )


def _parse_orchestrator(data: dict) -> OrchestratorConfig:
    unknown = set(data) - set(OrchestratorConfig.__dataclass_fields__)
    if unknown:
        raise ValueError(f"Unknown orchestrator settings: {', '.join(sorted(unknown))}")
    return OrchestratorConfig(**data)


def parse_config(data: dict[str, Any]) -> Config:
    models = {}
    for model_name, model_data in (data.get("models") or {}).items():
        models[model_name.lower()] = ModelConfig(
            name=model_name.lower(),
            provider=model_data.get("provider", "openai"),
            api_key=model_data.get("api_key"),
            base_url=model_data.get("base_url"),
            model_name=model_data.get("model_name"),
            max_tokens=model_data.get("max_tokens"),
        )

    planner_data = data.get("planner") or {}
    orchestrator_data = data.get("orchestrator") or {}

    return Config(
        models=models,
        default_model=str(data.get("default_model", "default")).lower(),
        agents=[_parse_agent(a) for a in data.get("agents") or []],
        planner=PlannerConfig(
            enabled=planner_data.get("enabled", True),
            model=planner_data.get("model"),
            system_prompt=planner_data.get("system_prompt"),
            max_tokens=planner_data.get("max_tokens", 1024),
        ),
        router=_parse_router(data.get("router") or {}),
        orchestrator=_parse_orchestrator(orchestrator_data),
    )


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def save_config(config: Config, path: Optional[Union[str, Path]] = None) -> None:
    config_path = Path(path) if path else get_config_path()

    data = {
        "default_model": config.default_model,
        "models": {},
        "agents": [],
        "planner": _drop_none({
            "enabled": config.planner.enabled,
            "model": config.planner.model,
            "system_prompt": config.planner.system_prompt,
            "max_tokens": config.planner.max_tokens,
        }),
        "router": _drop_none({
            "presets": config.router.presets,
            "default_agent_id": config.router.default_agent_id,
            "load_balancing": config.router.load_balancing,
            "fallback_to_least_loaded": config.router.fallback_to_least_loaded,
            "rules": [
                _drop_none({
                    "name": rule.name,
                    "agent_id": rule.agent_id,
                    "pattern": rule.pattern,
                    "keywords": rule.keywords or None,
                    "capability": rule.capability,
                    "priority": rule.priority,
                })
                for rule in config.router.rules
            ],
        }),
        "orchestrator": dict(vars(config.orchestrator)),
    }

    for model_name, model_config in config.models.items():
        model_data = {}
        if model_config.provider != "openai":
            model_data["provider"] = model_config.provider
        if model_config.api_key:
            model_data["api_key"] = model_config.api_key
        if model_config.base_url:
            model_data["base_url"] = model_config.base_url
        if model_config.model_name:
            model_data["model_name"] = model_config.model_name
        if model_config.max_tokens:
            model_data["max_tokens"] = model_config.max_tokens
        data["models"][model_name] = model_data

    for spec in config.agents:
        entry = _drop_none(dict(vars(spec)))
        if entry.get("max_iterations") == 10:
            del entry["max_iterations"]
        data["agents"].append(entry)

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)


def create_sample_config(path: Optional[Union[str, Path]] = None) -> None:
    config_path = Path(path) if path else get_config_path()
    if config_path.exists():
        return

    sample_config = """# Conductor Configuration
# Copy this file to ~/.conductor (or point CONDUCTOR_CONFIG at it) and fill in your API keys

default_model: default

# Model endpoints
# Each model needs: api_key, base_url, model_name
# Optional: provider (default: openai, or azure), max_tokens
models:
  default:
    provider: "openai"
    api_key: "your-api-key"
    base_url: "https://api.example.com/v1"
    model_name: "model-name"
    max_tokens: 4096

# Sub-agents: a preset id, or a mapping overriding preset fields
agents:
  - code-generator
  - ui-designer
  - tester
  - code-reviewer
  - debugger
  - id: finalizer
    preset: finalizer
    model: default

planner:
  enabled: true
  max_tokens: 1024

router:
  presets: [code_generation, design, testing, code_review, debugging, finalization]
  default_agent_id: code-generator
  load_balancing: true
  fallback_to_least_loaded: true
  rules:
    - name: Docs
      keywords: [readme, documentation]
      agent_id: finalizer
      priority: 4

orchestrator:
  max_parallel_tasks: 5
  task_timeout: 300      # seconds
  retry_failed_tasks: true
  max_retries: 2
  retry_delay: 1.0       # seconds, multiplied by the attempt number
  generate_plan_artifact: true
  error_fix_loop: true
  max_fix_rounds: 5
  verbose: false
"""

    with open(config_path, "w", encoding="utf-8") as f:
        f.write(sample_config)
