"""
A scripted model backend and small builders shared by the tests.
"""

import asyncio
from typing import Callable, Optional, Union

from conductor.agents import SubAgent
from conductor.clients import (
    ChunkType,
    FinishReason,
    Message,
    ModelBackend,
    ModelResponse,
    Role,
    StreamChunk,
    ToolCall,
)

Scripted = Union[ModelResponse, str, BaseException]


class ScriptedBackend(ModelBackend):
    """Replays queued responses, then falls back to ``responder`` (or a plain "done")."""

    def __init__(
        self,
        responses: Optional[list[Scripted]] = None,
        responder: Optional[Callable[[list[Message]], Scripted]] = None,
        delay: float = 0.0,
        model_name: str = "scripted",
    ):
        self.responses = list(responses or [])
        self.responder = responder
        self.delay = delay
        self.model_name = model_name
        self.calls: list[list[Message]] = []

    async def generate(self, messages, tools=None, max_tokens=4096, temperature=0.0):
        self.calls.append(list(messages))
        if self.delay:
            await asyncio.sleep(self.delay)

        if self.responses:
            response = self.responses.pop(0)
        elif self.responder is not None:
            response = self.responder(messages)
        else:
            response = "done"

        if isinstance(response, BaseException):
            raise response
        if isinstance(response, str):
            response = ModelResponse(content=response)
        return response

    async def generate_stream(self, messages, tools=None, max_tokens=4096, temperature=0.0):
        response = await self.generate(messages, tools, max_tokens, temperature)
        if response.content:
            half = len(response.content) // 2
            for part in (response.content[:half], response.content[half:]):
                if part:
                    yield StreamChunk(type=ChunkType.TEXT, content=part)
        for call in response.tool_calls:
            yield StreamChunk(type=ChunkType.TOOL_CALL, tool_call=call)


def tool_call(name: str, call_id: str = "call_1", **arguments) -> ToolCall:
    return ToolCall(id=call_id, name=name, arguments=arguments)


def calls(*tool_calls: ToolCall, content: Optional[str] = None) -> ModelResponse:
    return ModelResponse(content=content, tool_calls=list(tool_calls), finish_reason=FinishReason.TOOL_CALLS)


def last_user_prompt(messages: list[Message]) -> str:
    return next(m.content for m in reversed(messages) if m.role == Role.USER)


def make_sub_agent(agent_id: str, backend: Optional[ModelBackend] = None, **kwargs) -> SubAgent:
    kwargs.setdefault("specialization", agent_id)
    return SubAgent(agent_id, backend or ScriptedBackend(), **kwargs)
