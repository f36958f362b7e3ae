import asyncio
import json
from unittest.mock import AsyncMock, call, patch

import pytest

from conductor.agents import Agent, Task, create_planner
from conductor.artifacts import Artifact, ArtifactMetadata, ArtifactType
from conductor.clients import Role
from conductor.config import OrchestratorConfig
from conductor.errors import OrchestratorError, RoutingError, TaskTimeoutError
from conductor.orchestration import Orchestrator, TaskRouter, TaskStatus, WorkflowMode
from conductor.tools import FunctionTool, ToolRegistry

from .helpers import ScriptedBackend, calls, last_user_prompt, make_sub_agent, tool_call

COMPLEX_PLAN = {
    "name": "Todo App",
    "strategy": "Build, test, review",
    "tasks": [
        {"id": "task-1", "agentRole": "Code Generator", "description": "Create the list component", "complexity": "Medium"},
        {"id": "task-2", "agentRole": "Test Engineer", "description": "Write component tests", "complexity": "Low"},
        {"id": "task-3", "agentRole": "Code Reviewer", "description": "Review everything", "complexity": "Low"},
    ],
}

SIMPLE_PLAN = {
    "name": "Tiny",
    "strategy": "Just do it",
    "tasks": [
        {"id": "task-1", "agentRole": "Code Generator", "description": "Write the function", "complexity": "Low"},
        {"id": "task-2", "agentRole": "Code Generator", "description": "Polish it", "complexity": "Low"},
    ],
}


def _orchestrator(*agents, planner=None, artifact_sink=None, diagnostics=None, rules=None, **settings) -> Orchestrator:
    settings.setdefault("error_fix_loop", False)
    router = TaskRouter(rules=rules)
    for agent in agents:
        router.register_agent(agent)
    return Orchestrator(
        OrchestratorConfig(**settings),
        router,
        planner=planner,
        artifact_sink=artifact_sink,
        diagnostics=diagnostics,
    )


def _tasks(*prompts: str, **metadata) -> list[Task]:
    return [Task(id=f"t{i}", prompt=prompt, metadata=dict(metadata)) for i, prompt in enumerate(prompts, 1)]


def _prompt_of(backend: ScriptedBackend, task_prompt: str) -> str:
    """The rendered user message a backend received for ``task_prompt``."""
    for messages in backend.calls:
        last = messages[-1]
        if last.role == Role.USER and last.content.split("\n")[0] == task_prompt:
            return last.content
    raise AssertionError(f"no call for {task_prompt!r}")


def _artifact_lines(prompt: str) -> list[str]:
    return sorted(line for line in prompt.splitlines() if line.startswith("- ") and "(v" in line)


@pytest.mark.asyncio
async def test_sequential_tasks_see_earlier_outputs_and_artifacts(file_tools):
    backend = ScriptedBackend([
        calls(tool_call("write_file", path="src/a.py", content="x")),
        "output-1",
        "output-2",
        "output-3",
    ])
    coder = make_sub_agent("coder", backend, specialization="code-generation", tools=file_tools)
    orchestrator = _orchestrator(coder)

    result = await orchestrator.execute("objective", tasks=_tasks("first", "second", "third"))

    assert [r.output for r in result.results] == ["output-1", "output-2", "output-3"]
    assert result.final_output == "output-1\n\noutput-2\n\noutput-3"
    assert result.workflow == WorkflowMode.SEQUENTIAL

    second = _prompt_of(backend, "second")
    assert "[Agent: code-generation] output-1" in second
    assert "- src/a.py (v1, code)" in second

    third = _prompt_of(backend, "third")
    assert third.index("[Agent: code-generation] output-1") < third.index("[Agent: code-generation] output-2")

    assert [a.path for a in result.artifacts] == ["src/a.py"]
    assert result.metadata == {"subtask_count": 3, "agents_used": 1, "artifact_count": 1, "fix_rounds": 0}


@pytest.mark.asyncio
async def test_previous_outputs_are_truncated():
    backend = ScriptedBackend(["z" * 50, "done"])
    orchestrator = _orchestrator(make_sub_agent("coder", backend), context_excerpt_chars=10)

    await orchestrator.execute("objective", tasks=_tasks("first", "second"))

    assert "[Agent: coder] zzzzzzzzzz..." in _prompt_of(backend, "second")


@pytest.mark.asyncio
async def test_conditional_workflow_threads_outputs_into_context():
    backend = ScriptedBackend(["output-1", "output-2"])
    orchestrator = _orchestrator(make_sub_agent("coder", backend))

    await orchestrator.execute("objective", "conditional", tasks=_tasks("first", "second"))

    second = _prompt_of(backend, "second")
    assert "- result_t1: output-1" in second


@pytest.mark.asyncio
async def test_parallel_batches_share_an_artifact_snapshot(file_tools):
    def responder(messages):
        last = messages[-1]
        if last.role == Role.USER:
            name = last.content.split("\n")[0]
            return calls(tool_call("write_file", path=f"{name}.txt", content=name))
        return "finished"

    # the delay makes each task yield while it holds its agent
    backend = ScriptedBackend(responder=responder, delay=0.01)
    a = make_sub_agent("a", backend, tools=file_tools)
    b = make_sub_agent("b", backend, tools=file_tools)
    orchestrator = _orchestrator(a, b, max_parallel_tasks=2)

    result = await orchestrator.execute("objective", WorkflowMode.PARALLEL, tasks=_tasks("p1", "p2", "p3", "p4", "p5"))

    assert len(result.results) == 5
    assert result.metadata["agents_used"] == 2
    assert sorted(a.path for a in result.artifacts) == ["p1.txt", "p2.txt", "p3.txt", "p4.txt", "p5.txt"]

    assert _artifact_lines(_prompt_of(backend, "p1")) == []
    assert _artifact_lines(_prompt_of(backend, "p2")) == []
    batch_one = ["- p1.txt (v1, text)", "- p2.txt (v1, text)"]
    assert _artifact_lines(_prompt_of(backend, "p3")) == batch_one
    assert _artifact_lines(_prompt_of(backend, "p4")) == batch_one
    assert len(_artifact_lines(_prompt_of(backend, "p5"))) == 4

    # the two tasks of a batch went to different agents
    first_batch = {d.agent_id for d in result.routing_decisions[:2]}
    assert first_batch == {"a", "b"}
    assert a.get_load().active == 0 and b.get_load().active == 0


@pytest.mark.asyncio
async def test_parallel_failure_keeps_sibling_artifacts(file_tools):
    def responder(messages):
        last = messages[-1]
        if last.role != Role.USER:
            return "finished"
        if last.content.startswith("bad"):
            raise RuntimeError("model failure")
        return calls(tool_call("write_file", path="good.txt", content="ok"))

    backend = ScriptedBackend(responder=responder)
    orchestrator = _orchestrator(
        make_sub_agent("a", backend, tools=file_tools),
        make_sub_agent("b", backend, tools=file_tools),
        retry_failed_tasks=False,
    )

    with pytest.raises(OrchestratorError) as exc_info:
        await orchestrator.execute("objective", "parallel", tasks=_tasks("good", "bad"))

    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert orchestrator.registry.get_by_path("good.txt") is not None


@pytest.mark.asyncio
async def test_failing_task_is_retried_with_linear_backoff():
    backend = ScriptedBackend(responder=lambda messages: RuntimeError("model down"))
    orchestrator = _orchestrator(make_sub_agent("coder", backend), max_retries=2, retry_delay=1.0)

    with patch("conductor.orchestration.orchestrator.asyncio.sleep", new=AsyncMock()) as sleep:
        with pytest.raises(OrchestratorError) as exc_info:
            await orchestrator.execute("objective", tasks=_tasks("flaky"))

    assert len(backend.calls) == 3
    assert sleep.await_args_list == [call(1.0), call(2.0)]
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert str(exc_info.value) == "Orchestrator execution failed: model down"
    assert exc_info.value.execution_id

    execution = orchestrator.tracker.get("t1")
    assert execution.status == TaskStatus.FAILED
    assert execution.retries == 2
    assert execution.error == "model down"


@pytest.mark.asyncio
async def test_retry_recovers_from_a_transient_failure():
    backend = ScriptedBackend([RuntimeError("blip"), "recovered"])
    orchestrator = _orchestrator(make_sub_agent("coder", backend), retry_delay=0)

    result = await orchestrator.execute("objective", tasks=_tasks("flaky"))

    assert result.final_output == "recovered"
    assert orchestrator.tracker.get("t1").status == TaskStatus.COMPLETED
    assert len(result.routing_decisions) == 2


@pytest.mark.asyncio
async def test_retries_disabled_fail_on_first_error():
    backend = ScriptedBackend(responder=lambda messages: RuntimeError("model down"))
    orchestrator = _orchestrator(make_sub_agent("coder", backend), retry_failed_tasks=False)

    with pytest.raises(OrchestratorError):
        await orchestrator.execute("objective", tasks=_tasks("once"))

    assert len(backend.calls) == 1


@pytest.mark.asyncio
async def test_task_deadline():
    coder = make_sub_agent("coder", ScriptedBackend(delay=1.0))
    orchestrator = _orchestrator(coder, task_timeout=0.05, max_retries=0)

    with pytest.raises(OrchestratorError) as exc_info:
        await orchestrator.execute("objective", tasks=_tasks("slow"))

    cause = exc_info.value.__cause__
    assert isinstance(cause, TaskTimeoutError)
    assert cause.task_id == "t1"
    assert coder.get_load().active == 0
    assert orchestrator.tracker.get("t1").status == TaskStatus.FAILED


@pytest.mark.asyncio
async def test_parallel_tasks_on_one_agent_do_not_see_each_other(file_tools):
    def responder(messages):
        last = messages[-1]
        if last.role == Role.USER:
            return calls(tool_call("write_file", path=f"{last.content}.txt", content="x"))
        return "finished"

    backend = ScriptedBackend(responder=responder, delay=0.01)
    coder = make_sub_agent("coder", backend, tools=file_tools, max_concurrent_tasks=2)
    orchestrator = _orchestrator(coder, max_parallel_tasks=2)

    result = await orchestrator.execute("objective", WorkflowMode.PARALLEL, tasks=_tasks("TASK-A", "TASK-B"))

    assert [d.agent_id for d in result.routing_decisions] == ["coder", "coder"]
    assert len(backend.calls) == 4
    for messages in backend.calls:
        assert len([m for m in messages if m.role == Role.USER]) == 1


class StallingBackend(ScriptedBackend):
    """Hangs on one chosen call so the task deadline expires mid-run."""

    def __init__(self, responses, stall_on: int):
        super().__init__(responses)
        self.stall_on = stall_on

    async def generate(self, messages, tools=None, max_tokens=4096, temperature=0.0):
        if len(self.calls) + 1 == self.stall_on:
            self.calls.append(list(messages))
            await asyncio.sleep(1.0)
        return await super().generate(messages, tools, max_tokens, temperature)


@pytest.mark.asyncio
async def test_retry_after_timeout_starts_from_a_clean_conversation():
    backend = StallingBackend([calls(tool_call("lookup")), "done"], stall_on=2)
    coder = make_sub_agent("coder", backend)
    orchestrator = _orchestrator(coder, task_timeout=0.2, max_retries=1, retry_delay=0)

    result = await orchestrator.execute("objective", tasks=_tasks("build"))

    assert result.final_output == "done"
    retry_call = backend.calls[2]
    assert [m.role for m in retry_call] == [Role.USER]
    assert [m.role for m in coder.get_history()] == [Role.USER, Role.ASSISTANT]


@pytest.mark.asyncio
async def test_no_agents_is_a_wrapped_routing_error():
    orchestrator = _orchestrator(retry_failed_tasks=False)

    with pytest.raises(OrchestratorError) as exc_info:
        await orchestrator.execute("objective")

    assert isinstance(exc_info.value.__cause__, RoutingError)
    assert exc_info.value.__cause__.task_id.endswith("-main")


@pytest.mark.asyncio
async def test_unknown_workflow_is_rejected():
    with pytest.raises(ValueError):
        await _orchestrator(make_sub_agent("coder")).execute("objective", "round-robin")


@pytest.mark.asyncio
async def test_without_planner_the_objective_is_one_task():
    backend = ScriptedBackend(["done"])
    orchestrator = _orchestrator(make_sub_agent("coder", backend))

    result = await orchestrator.execute("Build a todo app", metadata={"user": "u1"})

    assert last_user_prompt(backend.calls[0]) == "Build a todo app"
    assert result.metadata["subtask_count"] == 1
    assert result.plan is None


@pytest.mark.asyncio
async def test_complex_plan_is_stored_as_an_artifact():
    planner = create_planner(ScriptedBackend([f"Plan:\n{json.dumps(COMPLEX_PLAN)}"]))
    worker_backend = ScriptedBackend()
    stored: list[Artifact] = []
    orchestrator = _orchestrator(make_sub_agent("coder", worker_backend), planner=planner, artifact_sink=stored.append)

    result = await orchestrator.execute("Build a todo app")

    assert result.plan.structured
    assert [d.agent_id for d in result.routing_decisions] == ["coder"] * 3
    assert len(worker_backend.calls) == 3

    plan_artifact = result.plan_artifact
    assert plan_artifact.type == ArtifactType.PLAN
    assert plan_artifact.filename == "todo-app.md"
    assert plan_artifact.path.startswith("plans/") and plan_artifact.path.endswith("-todo-app.md")
    assert plan_artifact.metadata.agent_id == "planner"
    assert "Create the list component" in plan_artifact.content
    assert stored == [plan_artifact]

    # later tasks can see the plan
    assert plan_artifact.path in _prompt_of(worker_backend, "Write component tests")


@pytest.mark.asyncio
async def test_plan_with_numeric_fields_still_runs():
    plan = {**COMPLEX_PLAN, "name": 42}
    plan["tasks"] = [{**step, "complexity": i} for i, step in enumerate(COMPLEX_PLAN["tasks"], 1)]
    planner = create_planner(ScriptedBackend([json.dumps(plan)]))
    orchestrator = _orchestrator(make_sub_agent("coder"), planner=planner)

    result = await orchestrator.execute("Build a todo app")

    assert len(result.results) == 3
    assert result.plan_artifact.filename == "42.md"
    assert "- **Complexity:** 1" in result.plan_artifact.content


@pytest.mark.asyncio
async def test_simple_plan_is_not_stored():
    planner = create_planner(ScriptedBackend([json.dumps(SIMPLE_PLAN)]))
    orchestrator = _orchestrator(make_sub_agent("coder"), planner=planner)

    result = await orchestrator.execute("Write a function")

    assert result.plan_artifact is None
    assert result.artifacts == []
    assert result.metadata["subtask_count"] == 2


@pytest.mark.asyncio
async def test_unstructured_plan_runs_lines_but_is_not_stored():
    planner = create_planner(ScriptedBackend(["1. one\n2. two\n3. three\n4. four"]))
    orchestrator = _orchestrator(make_sub_agent("coder"), planner=planner)

    result = await orchestrator.execute("objective")

    assert result.metadata["subtask_count"] == 4
    assert result.plan_artifact is None
    assert not result.plan.structured


@pytest.mark.asyncio
async def test_plan_artifact_generation_can_be_disabled():
    planner = create_planner(ScriptedBackend([json.dumps(COMPLEX_PLAN)]))
    orchestrator = _orchestrator(make_sub_agent("coder"), planner=planner, generate_plan_artifact=False)

    result = await orchestrator.execute("Build a todo app")

    assert result.plan_artifact is None


@pytest.mark.asyncio
async def test_empty_plan_falls_back_to_the_objective():
    planner = create_planner(ScriptedBackend(["   "]))
    backend = ScriptedBackend()
    orchestrator = _orchestrator(make_sub_agent("coder", backend), planner=planner)

    result = await orchestrator.execute("Just answer this")

    assert len(result.results) == 1
    assert last_user_prompt(backend.calls[0]) == "Just answer this"


@pytest.mark.asyncio
async def test_parallel_mode_skips_planning():
    planner_backend = ScriptedBackend([json.dumps(COMPLEX_PLAN)])
    orchestrator = _orchestrator(make_sub_agent("coder"), planner=create_planner(planner_backend))

    result = await orchestrator.execute("objective", WorkflowMode.PARALLEL)

    assert planner_backend.calls == []
    assert result.plan is None


@pytest.mark.asyncio
async def test_referenced_plan_is_updated_in_place():
    existing = Artifact(
        id="plan-1",
        filename="todo-app.md",
        path="plans/2024-01-01-todo-app.md",
        content="# Old plan",
        mime_type="text/markdown",
        type=ArtifactType.PLAN,
        metadata=ArtifactMetadata(agent_id="planner"),
        version=1,
    )
    planner = create_planner(ScriptedBackend([json.dumps(COMPLEX_PLAN)]))
    orchestrator = _orchestrator(make_sub_agent("coder"), planner=planner)

    result = await orchestrator.execute("Refine @todo-app with sharing", existing_artifacts=[existing])

    assert result.plan_artifact.id == "plan-1"
    assert result.plan_artifact.path == "plans/2024-01-01-todo-app.md"
    assert result.plan_artifact.version == 2
    assert len(result.artifacts) == 1


@pytest.mark.asyncio
async def test_planner_starts_each_run_fresh():
    planner_backend = ScriptedBackend([json.dumps(SIMPLE_PLAN), json.dumps(SIMPLE_PLAN)])
    orchestrator = _orchestrator(make_sub_agent("coder"), planner=create_planner(planner_backend))

    await orchestrator.execute("first objective")
    await orchestrator.execute("second objective")

    second_run = planner_backend.calls[1]
    assert [m.role for m in second_run] == [Role.SYSTEM, Role.USER]
    assert "second objective" in second_run[1].content


@pytest.mark.asyncio
async def test_failing_sink_does_not_fail_the_run(file_tools):
    def sink(artifact):
        raise IOError("disk full")

    backend = ScriptedBackend([calls(tool_call("write_file", path="a.py", content="x")), "done"])
    orchestrator = _orchestrator(make_sub_agent("coder", backend, tools=file_tools), artifact_sink=sink)

    with patch("conductor.orchestration.orchestrator.ui.print_warning") as warn:
        result = await orchestrator.execute("objective", tasks=_tasks("write"))

    assert [a.path for a in result.artifacts] == ["a.py"]
    warn.assert_called_once()
    assert "disk full" in warn.call_args.args[0]


@pytest.mark.asyncio
async def test_async_sink_is_awaited(file_tools):
    persisted = []

    async def sink(artifact):
        await asyncio.sleep(0)
        persisted.append((artifact.path, artifact.version))

    backend = ScriptedBackend([
        calls(tool_call("write_file", path="a.py", content="1")),
        "first",
        calls(tool_call("write_file", path="a.py", content="2")),
        "second",
    ])
    orchestrator = _orchestrator(make_sub_agent("coder", backend, tools=file_tools), artifact_sink=sink)

    result = await orchestrator.execute("objective", tasks=_tasks("one", "two"))

    assert persisted == [("a.py", 1), ("a.py", 2)]
    assert result.artifacts[0].version == 2


class TestErrorFixLoop:
    @pytest.mark.asyncio
    async def test_clean_project_takes_one_round(self):
        debugger_backend = ScriptedBackend(["No errors found."])
        orchestrator = _orchestrator(
            make_sub_agent("coder", ScriptedBackend(["the app"])),
            make_sub_agent("debugger", debugger_backend),
            error_fix_loop=True,
        )

        result = await orchestrator.execute("objective", tasks=_tasks("build"))

        assert result.metadata["fix_rounds"] == 1
        assert len(result.results) == 2
        assert result.final_output == "the app"
        assert result.routing_decisions[-1].agent_id == "debugger"
        assert result.routing_decisions[-1].confidence == 1.0
        assert len(debugger_backend.calls) == 1

    @pytest.mark.asyncio
    async def test_errors_are_fixed_until_clean(self):
        debugger_backend = ScriptedBackend([
            "TypeError in src/app.tsx line 3",
            "Fixed the type error",
            "No errors found",
        ])
        orchestrator = _orchestrator(
            make_sub_agent("coder", ScriptedBackend(["the app"])),
            make_sub_agent("debugger", debugger_backend),
            error_fix_loop=True,
        )

        result = await orchestrator.execute("objective", tasks=_tasks("build"))

        assert result.metadata["fix_rounds"] == 2
        assert [r.output for r in result.results[1:]] == [
            "TypeError in src/app.tsx line 3",
            "Fixed the type error",
            "No errors found",
        ]
        fix_prompt = last_user_prompt(debugger_backend.calls[1])
        assert "TypeError in src/app.tsx line 3" in fix_prompt

    @pytest.mark.asyncio
    async def test_rounds_are_bounded(self):
        debugger_backend = ScriptedBackend(responder=lambda messages: "Still broken")
        orchestrator = _orchestrator(
            make_sub_agent("coder"),
            make_sub_agent("debugger", debugger_backend),
            error_fix_loop=True,
            max_fix_rounds=2,
        )

        result = await orchestrator.execute("objective", tasks=_tasks("build"))

        assert result.metadata["fix_rounds"] == 2
        assert len(debugger_backend.calls) == 4

    @pytest.mark.asyncio
    async def test_diagnostics_are_included_in_the_check(self):
        def check_type_errors(include_warnings=False):
            return {
                "has_errors": True,
                "errors": [{"file": "src/app.tsx", "line": 3, "column": 7, "message": "Type 'string' is not assignable", "code": "TS2322"}],
            }

        debugger_backend = ScriptedBackend(["No errors found"])
        orchestrator = _orchestrator(
            make_sub_agent("coder"),
            make_sub_agent("debugger", debugger_backend),
            diagnostics=ToolRegistry([FunctionTool(check_type_errors)]),
            error_fix_loop=True,
        )

        await orchestrator.execute("objective", tasks=_tasks("build"))

        check_prompt = last_user_prompt(debugger_backend.calls[0])
        assert "Automated checks: Found 1 type error(s)" in check_prompt
        assert "**src/app.tsx** (line 3, col 7)" in check_prompt

    @pytest.mark.asyncio
    async def test_failure_stops_the_loop_without_failing_the_run(self):
        debugger_backend = ScriptedBackend(responder=lambda messages: RuntimeError("debugger down"))
        orchestrator = _orchestrator(
            make_sub_agent("coder", ScriptedBackend(["the app"])),
            make_sub_agent("debugger", debugger_backend),
            error_fix_loop=True,
            retry_failed_tasks=False,
        )

        result = await orchestrator.execute("objective", tasks=_tasks("build"))

        assert result.final_output == "the app"
        assert result.metadata["fix_rounds"] == 1

    @pytest.mark.asyncio
    async def test_skipped_without_a_debugger(self):
        orchestrator = _orchestrator(make_sub_agent("coder"), error_fix_loop=True)

        result = await orchestrator.execute("objective", tasks=_tasks("build"))

        assert result.metadata["fix_rounds"] == 0


@pytest.mark.asyncio
async def test_stats_and_monitor():
    orchestrator = _orchestrator(make_sub_agent("coder"))
    await orchestrator.execute("objective", tasks=_tasks("one", "two"))

    stats = orchestrator.get_stats()
    assert stats["active_tasks"] == 0
    assert stats["total_executions"] == 2
    assert stats["router_stats"]["total_agents"] == 1
    assert stats["model_calls"] == 2
    assert stats["calls_by_agent"] == {"coder": 2}
    assert orchestrator.monitor().tracker is orchestrator.tracker

    orchestrator.clear_history()
    assert orchestrator.get_stats()["total_executions"] == 0


@pytest.mark.asyncio
async def test_planner_can_be_a_plain_agent():
    planner = Agent("planner", ScriptedBackend([json.dumps(SIMPLE_PLAN)]), role="planner")
    orchestrator = _orchestrator(make_sub_agent("coder"), planner=planner)

    result = await orchestrator.execute("objective")

    assert [t.id for t in result.plan.tasks] == ["task-1", "task-2"]


@pytest.mark.asyncio
async def test_call_counts_cover_only_the_latest_run():
    orchestrator = _orchestrator(make_sub_agent("coder"))

    await orchestrator.execute("objective", tasks=_tasks("one", "two"))
    await orchestrator.execute("objective", tasks=_tasks("three"))

    assert orchestrator.get_stats()["model_calls"] == 1
