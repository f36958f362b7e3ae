import pytest

from conductor.tools import FunctionTool, ToolRegistry


@pytest.fixture
def written_files() -> dict[str, str]:
    return {}


@pytest.fixture
def file_tools(written_files) -> ToolRegistry:
    def write_file(path: str, content: str) -> str:
        """Write a file."""
        written_files[path] = content
        return f"Wrote {len(content)} characters to {path}"

    def read_file(path: str) -> str:
        """Read a file."""
        return written_files[path]

    return ToolRegistry([FunctionTool(write_file), FunctionTool(read_file)])
