"""
OpenAI-compatible model backend.
Works with OpenAI, Azure OpenAI, OpenRouter, DeepSeek and other OpenAI-compatible APIs.
"""

import json
from typing import Any, AsyncIterator, Optional

import httpx
from openai import AsyncOpenAI, AsyncAzureOpenAI

from .. import stats
from .base import (
    ChunkType,
    FinishReason,
    Message,
    ModelBackend,
    ModelResponse,
    Role,
    StreamChunk,
    ToolCall,
    ToolDefinition,
)

AZURE_API_VERSION = "2024-05-01-preview"


def _finish_reason(value: Optional[str], has_tool_calls: bool) -> FinishReason:
    if has_tool_calls or value == "tool_calls":
        return FinishReason.TOOL_CALLS
    if value == "length":
        return FinishReason.MAX_TOKENS
    if value in (None, "stop"):
        return FinishReason.STOP
    return FinishReason.ERROR


class OpenAICompatibleClient(ModelBackend):
    def __init__(
        self,
        api_key: str,
        base_url: str,
        model_name: str,
        provider: str = "openai",
        timeout: float = 120.0,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.model_name = model_name
        self.provider = provider.lower()

        if self.provider == "azure":
            self._client = AsyncAzureOpenAI(
                api_key=api_key,
                azure_endpoint=base_url,
                api_version=AZURE_API_VERSION,
                http_client=httpx.AsyncClient(timeout=timeout),
            )
        else:
            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url,
                http_client=httpx.AsyncClient(timeout=timeout),
            )

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        result = []
        for msg in messages:
            if msg.role == Role.TOOL and msg.tool_results:
                # one wire message per result, keyed to the originating call
                for tr in msg.tool_results:
                    result.append({
                        "role": "tool",
                        "tool_call_id": tr.tool_call_id,
                        "content": tr.content_for_model(),
                    })
            elif msg.role == Role.TOOL:
                result.append({
                    "role": "tool",
                    "tool_call_id": msg.tool_call_id or "",
                    "content": msg.content or "",
                })
            else:
                result.append(msg.to_dict())
        return result

    def _convert_tools(self, tools: Optional[list[ToolDefinition]]) -> Optional[list[dict[str, Any]]]:
        if not tools:
            return None
        return [tool.to_dict() for tool in tools]

    def _parse_arguments(self, raw: Any) -> dict[str, Any]:
        if isinstance(raw, dict):
            return raw
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def _parse_tool_calls(self, tool_calls_data: list[Any]) -> list[ToolCall]:
        return [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=self._parse_arguments(tc.function.arguments),
            )
            for tc in tool_calls_data
        ]

    def _request_kwargs(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]],
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model_name,
            "messages": self._convert_messages(messages),
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        converted_tools = self._convert_tools(tools)
        if converted_tools:
            kwargs["tools"] = converted_tools
        return kwargs

    async def generate(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> ModelResponse:
        kwargs = self._request_kwargs(messages, tools, max_tokens, temperature)
        response = await self._client.chat.completions.create(**kwargs)

        if response.usage is not None:
            stats.record_tokens(self.model_name, response.usage.total_tokens or 0)

        choice = response.choices[0]
        tool_calls = []
        if choice.message.tool_calls:
            tool_calls = self._parse_tool_calls(choice.message.tool_calls)

        return ModelResponse(
            content=choice.message.content,
            tool_calls=tool_calls,
            finish_reason=_finish_reason(choice.finish_reason, bool(tool_calls)),
        )

    async def generate_stream(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> AsyncIterator[StreamChunk]:
        kwargs = self._request_kwargs(messages, tools, max_tokens, temperature)
        kwargs["stream"] = True

        stream = await self._client.chat.completions.create(**kwargs)

        tool_calls_map: dict[int, dict[str, Any]] = {}
        finish_reason = None

        async for chunk in stream:
            if not chunk.choices:
                continue

            delta = chunk.choices[0].delta

            if chunk.choices[0].finish_reason:
                finish_reason = chunk.choices[0].finish_reason

            if delta.content:
                yield StreamChunk(type=ChunkType.TEXT, content=delta.content)

            if delta.tool_calls:
                for tc in delta.tool_calls:
                    current_tool = tool_calls_map.setdefault(tc.index, {"id": "", "name": "", "arguments": ""})
                    if tc.id:
                        current_tool["id"] = tc.id
                    if tc.function:
                        if tc.function.name:
                            current_tool["name"] = tc.function.name
                        if tc.function.arguments:
                            current_tool["arguments"] += tc.function.arguments

        # tool-call arguments arrive in fragments; only emit them once complete
        reason = _finish_reason(finish_reason, bool(tool_calls_map))
        for idx in sorted(tool_calls_map.keys()):
            tc_data = tool_calls_map[idx]
            yield StreamChunk(
                type=ChunkType.TOOL_CALL,
                tool_call=ToolCall(
                    id=tc_data["id"] or f"call_{idx}",
                    name=tc_data["name"],
                    arguments=self._parse_arguments(tc_data["arguments"]),
                ),
                finish_reason=reason,
            )

    async def aclose(self) -> None:
        await self._client.close()


def create_client(
    api_key: str,
    base_url: str,
    model_name: str,
    provider: str = "openai",
) -> ModelBackend:
    return OpenAICompatibleClient(
        api_key=api_key,
        base_url=base_url,
        model_name=model_name,
        provider=provider,
    )
