"""
Error detection for the post-execution fix loop.
Runs the host's type checker and console log tools and classifies what they report.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from ..clients.base import ToolCall
from ..tools.base import ToolSet
from ..ui import ui

TYPE_CHECK_TOOL = "check_type_errors"
CONSOLE_LOGS_TOOL = "get_console_logs"

DEPENDENCY_MARKERS = (
    "Failed to resolve import",
    "Cannot find module",
    "Module not found",
    "dependencies are imported but could not be resolved",
    "The following dependencies",
    "Are they installed?",
)
SYNTAX_MARKERS = ("SyntaxError", "Unexpected token", "Parsing error")
COMPILATION_MARKERS = (
    "Internal server error",
    "500",
    "failed to load config",
    "server restart failed",
)
RUNTIME_MARKERS = ("Uncaught", "Unhandled", "ReferenceError", "TypeError", "Error:")

_STACK_LOCATION = re.compile(r"at\s+.+?\((.+?):(\d+):(\d+)\)")


@dataclass
class TypeErrorEntry:
    file: str
    line: int
    column: int
    message: str
    code: str


@dataclass
class BuildError:
    message: str
    type: str = "other"
    file: Optional[str] = None
    line: Optional[int] = None


@dataclass
class RuntimeErrorEntry:
    message: str
    stack: str = ""
    file: Optional[str] = None
    line: Optional[int] = None


@dataclass
class ErrorReport:
    type_errors: list[TypeErrorEntry] = field(default_factory=list)
    build_errors: list[BuildError] = field(default_factory=list)
    runtime_errors: list[RuntimeErrorEntry] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.type_errors or self.build_errors or self.runtime_errors)

    @property
    def summary(self) -> str:
        parts = []
        if self.type_errors:
            parts.append(f"{len(self.type_errors)} type error(s)")
        if self.build_errors:
            parts.append(f"{len(self.build_errors)} build error(s)")
        if self.runtime_errors:
            parts.append(f"{len(self.runtime_errors)} runtime error(s)")
        return f"Found {', '.join(parts)}" if parts else "No errors found"


def _tool_output(output: Any) -> Any:
    if isinstance(output, str):
        try:
            return json.loads(output)
        except ValueError:
            return None
    return output


def classify_log(message: str, stack: str = "") -> Union[BuildError, RuntimeErrorEntry]:
    if any(m in message for m in DEPENDENCY_MARKERS):
        return BuildError(message=message, type="dependency")
    if any(m in message for m in SYNTAX_MARKERS):
        return BuildError(message=message, type="syntax")
    if any(m in message for m in COMPILATION_MARKERS):
        return BuildError(message=message, type="compilation")
    if any(m in message for m in RUNTIME_MARKERS):
        location = _STACK_LOCATION.search(stack)
        return RuntimeErrorEntry(
            message=message,
            stack=stack,
            file=location.group(1) if location else None,
            line=int(location.group(2)) if location else None,
        )
    return BuildError(message=message, type="other")


async def _collect_type_errors(tools: ToolSet, report: ErrorReport):
    result = await tools.execute(ToolCall(
        id="diagnostics-type-check",
        name=TYPE_CHECK_TOOL,
        arguments={"include_warnings": False},
    ))
    output = _tool_output(result.output) if result.success else None
    if not isinstance(output, dict):
        return
    if not (output.get("has_errors") or output.get("hasErrors")):
        return

    for err in output.get("errors") or []:
        report.type_errors.append(TypeErrorEntry(
            file=err.get("file") or "unknown",
            line=err.get("line") or 0,
            column=err.get("column") or 0,
            message=err.get("message") or "Unknown error",
            code=err.get("code") or "TS0000",
        ))


async def _collect_console_errors(tools: ToolSet, report: ErrorReport):
    result = await tools.execute(ToolCall(
        id="diagnostics-console-logs",
        name=CONSOLE_LOGS_TOOL,
        arguments={"level": "error", "limit": 100},
    ))
    output = _tool_output(result.output) if result.success else None
    if not isinstance(output, dict):
        return

    for log in output.get("logs") or []:
        if log.get("level", "error") not in ("error", "warn"):
            continue
        message = log.get("message") or log.get("content") or ""
        entry = classify_log(message, log.get("stack") or "")
        if isinstance(entry, RuntimeErrorEntry):
            report.runtime_errors.append(entry)
        else:
            report.build_errors.append(entry)


async def check_for_errors(tools: ToolSet) -> ErrorReport:
    """Run the diagnostic tools the tool set declares. Tool failures are reported as warnings."""
    report = ErrorReport()

    if tools.has_tool(TYPE_CHECK_TOOL):
        try:
            await _collect_type_errors(tools, report)
        except Exception as e:
            ui.print_warning(f"Failed to check type errors: {e}")

    if tools.has_tool(CONSOLE_LOGS_TOOL):
        try:
            await _collect_console_errors(tools, report)
        except Exception as e:
            ui.print_warning(f"Failed to check console logs: {e}")

    return report


def format_errors_for_fix(report: ErrorReport) -> str:
    if not report.has_errors:
        return ""

    parts = ["ERRORS DETECTED - Please fix the following issues:", ""]

    if report.type_errors:
        parts.append("## Type Errors:")
        parts.append("")
        for err in report.type_errors:
            parts.append(
                f"- **{err.file}** (line {err.line}, col {err.column}): {err.message} [{err.code}]"
            )
        parts.append("")

    if report.build_errors:
        parts.append("## Build Errors:")
        parts.append("")
        for err in report.build_errors:
            if err.file and err.line:
                parts.append(f"- **{err.file}** (line {err.line}): {err.message}")
            else:
                parts.append(f"- {err.message}")
        parts.append("")

    if report.runtime_errors:
        parts.append("## Runtime Errors:")
        parts.append("")
        for err in report.runtime_errors:
            parts.append(f"- {err.message}")
            if err.file and err.line:
                parts.append(f"  Location: {err.file}:{err.line}")
            if err.stack:
                stack_head = " ".join(err.stack.splitlines()[:3])
                parts.append(f"  Stack: {stack_head}")
        parts.append("")

    parts.append("Please fix all these errors to ensure the application builds and runs correctly.")
    return "\n".join(parts)
