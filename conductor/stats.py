"""
Simple model and tool call statistics tracking.
"""

from dataclasses import dataclass, field
from typing import Dict


@dataclass
class APICallStats:
    total_calls: int = 0
    calls_by_agent: Dict[str, int] = field(default_factory=dict)
    tokens_by_model: Dict[str, int] = field(default_factory=dict)
    tool_calls: int = 0
    failed_tool_calls: int = 0

    def record_call(self, agent: str = "unknown"):
        self.total_calls += 1
        self.calls_by_agent[agent] = self.calls_by_agent.get(agent, 0) + 1

    def record_tokens(self, model: str, tokens: int):
        self.tokens_by_model[model] = self.tokens_by_model.get(model, 0) + tokens

    def record_tool_call(self, success: bool = True):
        self.tool_calls += 1
        if not success:
            self.failed_tool_calls += 1

    def reset(self):
        self.total_calls = 0
        self.calls_by_agent.clear()
        self.tokens_by_model.clear()
        self.tool_calls = 0
        self.failed_tool_calls = 0

    def get_summary(self) -> str:
        lines = [
            "Model call statistics:",
            f"  Total calls: {self.total_calls}",
        ]
        if self.calls_by_agent:
            lines.append("  By agent:")
            for agent, count in self.calls_by_agent.items():
                lines.append(f"    {agent}: {count}")
        if self.tokens_by_model:
            lines.append("  Tokens by model:")
            for model, tokens in self.tokens_by_model.items():
                lines.append(f"    {model}: {tokens}")
        if self.tool_calls:
            lines.append(f"  Tool calls: {self.tool_calls} ({self.failed_tool_calls} failed)")
        return "\n".join(lines)


_global_stats = APICallStats()


def get_stats() -> APICallStats:
    return _global_stats


def record_call(agent: str = "unknown"):
    _global_stats.record_call(agent)


def record_tokens(model: str, tokens: int):
    _global_stats.record_tokens(model, tokens)


def record_tool_call(success: bool = True):
    _global_stats.record_tool_call(success)


def reset_stats():
    _global_stats.reset()
