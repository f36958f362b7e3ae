"""
Conversation memory for a single agent.
Keeps the full turn history and hands the model a token-bounded context window.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..clients.base import Message, Role, ToolCall, ToolResult


def estimate_tokens(text: str) -> int:
    return len(text) // 4 + len(text.split())


@dataclass
class MemoryEntry:
    message: Message
    timestamp: str = ""
    token_count: int = 0

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()
        if self.token_count == 0:
            self.token_count = self._estimate_tokens()

    def _estimate_tokens(self) -> int:
        parts = [self.message.content or ""]
        parts.extend(f"{tc.name} {tc.arguments}" for tc in self.message.tool_calls)
        parts.extend(tr.content_for_model() for tr in self.message.tool_results)
        return estimate_tokens(" ".join(parts))


@dataclass
class ConversationMemory:
    system_prompt: Optional[str] = None
    max_tokens: Optional[int] = None

    entries: list[MemoryEntry] = field(default_factory=list)

    def add_message(self, message: Message) -> MemoryEntry:
        entry = MemoryEntry(message=message)
        self.entries.append(entry)
        return entry

    def get_messages(self) -> list[Message]:
        return [entry.message for entry in self.entries]

    def get_context_window(self, max_tokens: Optional[int] = None) -> list[Message]:
        budget = max_tokens or self.max_tokens
        if not budget:
            return self.get_messages()

        kept: list[MemoryEntry] = []
        used = 0
        for entry in reversed(self.entries):
            if kept and used + entry.token_count > budget:
                break
            kept.append(entry)
            used += entry.token_count
        kept.reverse()

        # a tool turn without its assistant request is rejected by providers
        while len(kept) > 1 and kept[0].message.role == Role.TOOL:
            kept.pop(0)

        return [entry.message for entry in kept]

    def clear(self):
        self.entries.clear()

    def get_summary(self) -> str:
        total = sum(entry.token_count for entry in self.entries)
        return f"Messages: {len(self.entries)} (~{total} tokens)"

    def to_dict(self) -> dict[str, Any]:
        return {
            "system_prompt": self.system_prompt,
            "max_tokens": self.max_tokens,
            "messages": [
                {
                    "role": entry.message.role.value,
                    "content": entry.message.content,
                    "tool_calls": [tc.to_dict() for tc in entry.message.tool_calls],
                    "tool_results": [tr.to_dict() for tr in entry.message.tool_results],
                    "timestamp": entry.timestamp,
                }
                for entry in self.entries
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationMemory":
        memory = cls(system_prompt=data.get("system_prompt"), max_tokens=data.get("max_tokens"))
        for item in data.get("messages", []):
            message = Message(
                role=Role(item["role"]),
                content=item.get("content"),
                tool_calls=[ToolCall(**tc) for tc in item.get("tool_calls", [])],
                tool_results=[ToolResult(**tr) for tr in item.get("tool_results", [])],
            )
            memory.entries.append(MemoryEntry(message=message, timestamp=item.get("timestamp", "")))
        return memory


__all__ = ["ConversationMemory", "MemoryEntry", "estimate_tokens"]
