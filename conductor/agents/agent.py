"""
Single-agent think -> act -> observe loop.
"""

import uuid
from typing import Any, AsyncIterator, Callable, Optional

from .. import stats
from ..artifacts import ArtifactDraft, ArtifactMetadata
from ..clients.base import ChunkType, Message, ModelBackend, Role, ToolCall, ToolDefinition, ToolResult
from ..memory import ConversationMemory
from ..tools.base import ToolSet
from .task import AgentEvent, AgentProgress, AgentResult, EventType, Task

DEFAULT_MAX_ITERATIONS = 10

# successful calls of these tools are reported back as artifacts
ARTIFACT_TOOLS = {"write_file", "create_file", "write_plan"}

CONTEXT_VALUE_CHARS = 1000

ProgressCallback = Callable[[AgentProgress], None]


class Agent:
    def __init__(
        self,
        agent_id: str,
        backend: ModelBackend,
        tools: Optional[ToolSet] = None,
        name: Optional[str] = None,
        role: Optional[str] = None,
        system_prompt: Optional[str] = None,
        memory: Optional[ConversationMemory] = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        max_tokens: int = 4096,
        temperature: float = 0.0,
        context_tokens: Optional[int] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

        self.id = agent_id
        self.backend = backend
        self.tools = tools
        self.name = name or agent_id
        self.role = role or agent_id
        self.memory = memory or ConversationMemory()
        if system_prompt is not None:
            self.memory.system_prompt = system_prompt
        self.max_iterations = max_iterations
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.context_tokens = context_tokens
        self.metadata = metadata or {}

    @property
    def system_prompt(self) -> Optional[str]:
        return self.memory.system_prompt

    def _tool_definitions(self) -> list[ToolDefinition]:
        return self.tools.definitions() if self.tools else []

    def _start_conversation(self, task: Task) -> ConversationMemory:
        # a run works on its own copy of the history; turns reach self.memory only when it finishes
        conversation = ConversationMemory(
            system_prompt=self.memory.system_prompt,
            max_tokens=self.memory.max_tokens,
            entries=list(self.memory.entries),
        )
        conversation.add_message(Message(role=Role.USER, content=self._render_task(task)))
        return conversation

    def _commit(self, conversation: ConversationMemory, seeded: int):
        self.memory.entries.extend(conversation.entries[seeded:])

    def _prepare_messages(self, conversation: ConversationMemory) -> list[Message]:
        messages = []
        if conversation.system_prompt:
            messages.append(Message(role=Role.SYSTEM, content=conversation.system_prompt))
        messages.extend(conversation.get_context_window(self.context_tokens))
        return messages

    def _render_task(self, task: Task) -> str:
        parts = [task.prompt]

        if task.context:
            parts.append("\n## Context")
            for key, value in task.context.items():
                text = str(value)
                if len(text) > CONTEXT_VALUE_CHARS:
                    text = text[:CONTEXT_VALUE_CHARS] + "..."
                parts.append(f"- {key}: {text}")

        if task.previous_outputs:
            parts.append("\n## Previous agent outputs")
            parts.extend(task.previous_outputs)

        if task.existing_artifacts:
            parts.append("\n## Existing artifacts")
            for artifact in task.existing_artifacts:
                parts.append(f"- {artifact.path} (v{artifact.version}, {artifact.type.value})")

        return "\n".join(parts)

    async def _run_tool_call(self, call: ToolCall) -> ToolResult:
        if self.tools is None:
            result = ToolResult(
                tool_call_id=call.id,
                name=call.name,
                error="No tools available",
                success=False,
            )
        else:
            try:
                result = await self.tools.execute(call)
            except Exception as e:
                result = ToolResult(
                    tool_call_id=call.id,
                    name=call.name,
                    error=str(e) or type(e).__name__,
                    success=False,
                )
        stats.record_tool_call(result.success)
        return result

    def _artifact_from_call(self, call: ToolCall, result: ToolResult, task: Task) -> Optional[ArtifactDraft]:
        if call.name not in ARTIFACT_TOOLS or not result.success:
            return None

        path = call.arguments.get("path") or call.arguments.get("file_path")
        content = call.arguments.get("content")
        if not path or not isinstance(content, str):
            return None

        path = str(path).removeprefix("./")
        return ArtifactDraft(
            filename=path.rsplit("/", 1)[-1],
            path=path,
            content=content,
            metadata=ArtifactMetadata(
                agent_id=self.id,
                agent_role=self.role,
                task_id=task.id,
            ),
        )

    def _result_metadata(self, iterations: int, completed: bool) -> dict[str, Any]:
        return {
            "iterations": iterations,
            "max_iterations": self.max_iterations,
            "completed": completed,
            "role": self.role,
        }

    async def execute(self, task: Task, on_progress: Optional[ProgressCallback] = None) -> AgentResult:
        def report(progress: AgentProgress):
            if on_progress:
                on_progress(progress)

        seeded = len(self.memory.entries)
        conversation = self._start_conversation(task)

        all_tool_calls: list[ToolCall] = []
        all_tool_results: list[ToolResult] = []
        artifacts: list[ArtifactDraft] = []
        output = ""
        iterations = 0
        completed = False

        for iteration in range(1, self.max_iterations + 1):
            iterations = iteration
            report(AgentProgress(iteration, self.max_iterations, completed_tool_calls=len(all_tool_results)))

            response = await self.backend.generate(
                self._prepare_messages(conversation),
                tools=self._tool_definitions(),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            stats.record_call(self.id)

            if response.content:
                output = response.content

            if not response.tool_calls:
                conversation.add_message(Message(role=Role.ASSISTANT, content=response.content))
                completed = True
                break

            results: list[ToolResult] = []
            for call in response.tool_calls:
                report(AgentProgress(
                    iteration,
                    self.max_iterations,
                    current_tool_call=call.name,
                    completed_tool_calls=len(all_tool_results),
                ))
                result = await self._run_tool_call(call)
                results.append(result)
                all_tool_calls.append(call)
                all_tool_results.append(result)

                artifact = self._artifact_from_call(call, result, task)
                if artifact:
                    artifacts.append(artifact)

            conversation.add_message(Message(
                role=Role.ASSISTANT,
                content=response.content,
                tool_calls=list(response.tool_calls),
            ))
            conversation.add_message(Message(role=Role.TOOL, tool_results=results))

        self._commit(conversation, seeded)
        report(AgentProgress(iterations, self.max_iterations, completed_tool_calls=len(all_tool_results)))

        return AgentResult(
            agent_id=self.id,
            output=output,
            tool_calls=all_tool_calls,
            tool_results=all_tool_results,
            artifacts=artifacts,
            iterations=iterations,
            metadata=self._result_metadata(iterations, completed),
        )

    async def execute_stream(self, task: Task) -> AsyncIterator[AgentEvent]:
        """Yield loop events as they happen.

        Each call starts an independent run. Stopping iteration early leaves the
        remaining tool calls of the current iteration unexecuted.
        """
        seeded = len(self.memory.entries)
        conversation = self._start_conversation(task)

        for iteration in range(1, self.max_iterations + 1):
            yield AgentEvent(type=EventType.ITERATION, iteration=iteration, max_iterations=self.max_iterations)

            text_parts: list[str] = []
            tool_calls: list[ToolCall] = []

            stream = self.backend.generate_stream(
                self._prepare_messages(conversation),
                tools=self._tool_definitions(),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            async for chunk in stream:
                if chunk.type == ChunkType.TEXT and chunk.content:
                    text_parts.append(chunk.content)
                    yield AgentEvent(type=EventType.THOUGHT, content=chunk.content)
                elif chunk.type == ChunkType.TOOL_CALL and chunk.tool_call:
                    call = chunk.tool_call
                    if not call.id:
                        call.id = f"call_{uuid.uuid4().hex[:8]}"
                    tool_calls.append(call)
                    yield AgentEvent(type=EventType.TOOL_CALL, tool_call=call)
            stats.record_call(self.id)

            text = "".join(text_parts)

            if not tool_calls:
                conversation.add_message(Message(role=Role.ASSISTANT, content=text))
                yield AgentEvent(type=EventType.RESPONSE, content=text)
                break

            results: list[ToolResult] = []
            for call in tool_calls:
                result = await self._run_tool_call(call)
                results.append(result)
                yield AgentEvent(type=EventType.TOOL_RESULT, tool_result=result)

            conversation.add_message(Message(role=Role.ASSISTANT, content=text or None, tool_calls=tool_calls))
            conversation.add_message(Message(role=Role.TOOL, tool_results=results))

        self._commit(conversation, seeded)
        yield AgentEvent(type=EventType.DONE)

    def reset(self):
        self.memory.clear()

    def get_history(self) -> list[Message]:
        return self.memory.get_messages()

    def get_info(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "role": self.role}
