import pytest
import yaml

from conductor.config import (
    CONFIG_ENV_VAR,
    AgentSpec,
    Config,
    ModelConfig,
    OrchestratorConfig,
    RoutingRuleConfig,
    create_sample_config,
    get_config_path,
    load_config,
    parse_config,
    save_config,
)


def test_defaults():
    config = OrchestratorConfig()

    assert config.max_parallel_tasks == 5
    assert config.task_timeout == 300.0
    assert config.retry_failed_tasks is True
    assert config.max_retries == 2
    assert config.retry_delay == 1.0
    assert config.generate_plan_artifact is True
    assert config.context_excerpt_chars == 500
    assert config.max_fix_rounds == 5
    assert config.debug_agent_id == "debugger"


@pytest.mark.parametrize("kwargs", [
    {"max_parallel_tasks": 0},
    {"task_timeout": 0},
    {"max_retries": -1},
    {"retry_delay": -0.5},
    {"context_excerpt_chars": 0},
    {"max_fix_rounds": -1},
])
def test_invalid_orchestrator_settings(kwargs):
    with pytest.raises(ValueError):
        OrchestratorConfig(**kwargs)


def test_parse_config():
    config = parse_config({
        "default_model": "Main",
        "models": {"Main": {"api_key": "k", "base_url": "https://api.example.com/v1", "model_name": "m"}},
        "agents": ["debugger", {"id": "writer", "specialization": "docs", "priority": 3, "model": "main"}],
        "planner": {"enabled": False},
        "router": {
            "presets": ["debugging"],
            "default_agent_id": "writer",
            "rules": [{"name": "Docs", "agent_id": "writer", "keywords": ["readme"]}],
        },
        "orchestrator": {"max_parallel_tasks": 2, "task_timeout": 30},
    })

    assert config.default_model == "main"
    assert config.get_model_config().model_name == "m"
    assert config.get_configured_models() == ["main"]
    assert config.agents[0] == AgentSpec(id="debugger", preset="debugger")
    assert config.agents[1].specialization == "docs"
    assert config.agents[1].priority == 3
    assert config.planner.enabled is False
    assert config.router.presets == ["debugging"]
    assert config.router.rules == [RoutingRuleConfig(name="Docs", agent_id="writer", keywords=["readme"])]
    assert config.orchestrator.max_parallel_tasks == 2
    assert config.orchestrator.task_timeout == 30


def test_parse_empty_config():
    config = parse_config({})

    assert config == Config()
    assert config.planner.enabled is True
    assert config.router.load_balancing is True


@pytest.mark.parametrize("data", [
    {"orchestrator": {"max_paralel_tasks": 2}},
    {"router": {"rules": [{"keywords": ["x"]}]}},
    {"agents": [{"model": "main"}]},
])
def test_invalid_config(data):
    with pytest.raises(ValueError):
        parse_config(data)


def test_unconfigured_models_are_not_listed():
    config = Config(models={"half": ModelConfig(name="half", api_key="k")})

    assert config.get_configured_models() == []


def test_config_path_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "conductor.yaml"))
    assert get_config_path() == tmp_path / "conductor.yaml"

    monkeypatch.delenv(CONFIG_ENV_VAR)
    assert get_config_path().name == ".conductor"


def test_missing_file_gives_defaults(tmp_path):
    assert load_config(tmp_path / "missing.yaml") == Config()


def test_save_and_load(tmp_path):
    path = tmp_path / "conductor.yaml"
    config = parse_config({
        "models": {"default": {"api_key": "k", "base_url": "u", "model_name": "m", "provider": "azure"}},
        "agents": ["tester", {"id": "writer", "specialization": "docs"}],
        "router": {"rules": [{"name": "Docs", "agent_id": "writer", "keywords": ["readme"], "priority": 4}]},
        "orchestrator": {"max_retries": 1},
    })

    save_config(config, path)
    loaded = load_config(path)

    assert loaded == config
    assert yaml.safe_load(path.read_text())["models"]["default"]["provider"] == "azure"


def test_sample_config_parses(tmp_path):
    path = tmp_path / "conductor.yaml"
    create_sample_config(path)

    config = load_config(path)

    assert config.get_configured_models() == ["default"]
    assert [a.id for a in config.agents][-1] == "finalizer"
    assert config.router.default_agent_id == "code-generator"
    assert config.orchestrator.task_timeout == 300


def test_sample_config_does_not_overwrite(tmp_path):
    path = tmp_path / "conductor.yaml"
    path.write_text("default_model: mine\n")

    create_sample_config(path)

    assert load_config(path).default_model == "mine"
