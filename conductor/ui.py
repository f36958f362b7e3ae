"""
Console output for orchestration runs.
"""

from typing import TYPE_CHECKING, Any, Optional

from rich.box import ROUNDED
from rich.console import Console, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import stats

if TYPE_CHECKING:
    from .orchestration.aggregator import OrchestratorResult
    from .orchestration.planning import DecomposedPlan
    from .orchestration.router import RoutingDecision
    from .orchestration.state import ExecutionTracker

console = Console()

STATUS_STYLES = {
    "pending": ("○", "dim"),
    "running": ("●", "yellow"),
    "completed": ("✓", "green"),
    "failed": ("✗", "red"),
}


class ExecutionMonitor:
    """Renders the task executions of an orchestrator; usable inside ``rich.live.Live``."""

    def __init__(self, tracker: "ExecutionTracker", title: str = "Task Executions"):
        self.tracker = tracker
        self.title = title

    def __rich__(self) -> RenderableType:
        table = Table(box=None, show_header=True, padding=(0, 2))
        table.add_column("", width=2)
        table.add_column("Task")
        table.add_column("Agent", style="cyan")
        table.add_column("Iteration", justify="right")
        table.add_column("Tool", style="dim")
        table.add_column("Retries", justify="right")

        for execution in self.tracker.snapshot():
            icon, style = STATUS_STYLES[execution.status.value]
            iteration = ""
            if execution.current_iteration is not None:
                iteration = f"{execution.current_iteration}/{execution.max_iterations}"
            table.add_row(
                Text(icon, style=style),
                Text(execution.task_id, style=style),
                execution.agent_id,
                iteration,
                execution.current_tool_call or "",
                str(execution.retries),
            )

        return Panel(
            table,
            title=f"[bold]{self.title}[/bold]",
            subtitle=f"{self.tracker.active_count} active",
            border_style="blue",
            box=ROUNDED,
            padding=(0, 1),
        )


class ConsoleUI:
    def __init__(self, output: Optional[Console] = None):
        self.console = output or console

    def print_phase(self, phase: str, description: str = ""):
        phase_icons = {
            "planning": "📋",
            "execution": "🔧",
            "error-fix": "🩺",
            "completed": "✅",
        }
        icon = phase_icons.get(phase, "▶")

        self.console.print()
        self.console.print(f"[bold blue]╭─ {icon} {phase} ─{'─' * max(0, 45 - len(phase))}[/bold blue]")
        if description:
            self.console.print(f"[bold blue]│[/bold blue] [dim]{description}[/dim]")
        self.console.print("[bold blue]╰──────────────────────────────────────────────────[/bold blue]")

    def print_plan(self, plan: "DecomposedPlan"):
        table = Table(box=ROUNDED, show_header=True, header_style="bold cyan")
        table.add_column("#", justify="right", width=3)
        table.add_column("Task ID", style="dim")
        table.add_column("Role", style="cyan")
        table.add_column("Description")
        table.add_column("Complexity")

        for i, step in enumerate(plan.tasks, 1):
            table.add_row(str(i), step.id, step.agent_role or "-", step.description, step.complexity or "")

        title = "Plan" if plan.structured else "Plan (unstructured)"
        self.console.print(Panel(table, title=f"[bold]{title}[/bold]", subtitle=plan.strategy[:80] or None))

    def print_routing(self, task_id: str, decision: "RoutingDecision"):
        self.console.print(
            f"[dim]│[/dim] [white]{task_id}[/white] → [cyan]{decision.agent_id}[/cyan] "
            f"[dim]({decision.confidence:.2f}, {decision.reason})[/dim]"
        )

    def print_task_done(self, task_id: str, agent_id: str, iterations: int, artifact_count: int):
        self.console.print(
            f"[green]│ ✓[/green] {task_id} [dim]by {agent_id}, "
            f"{iterations} iteration(s), {artifact_count} artifact(s)[/dim]"
        )

    def print_batch(self, index: int, total: int, size: int):
        self.console.print(f"[cyan]│[/cyan] Batch {index}/{total} [dim]({size} task(s))[/dim]")

    def print_warning(self, message: str):
        self.console.print(f"[yellow]⚠ {message}[/yellow]")

    def print_error(self, error: str):
        self.console.print()
        self.console.print(f"[red]╭─ ✗ Error ─{'─' * 48}[/red]")
        for line in error.split("\n")[:10]:
            self.console.print(f"[red]│[/red] {line[:90]}")
        self.console.print("[red]╰──────────────────────────────────────────────────[/red]")

    def print_stats(self, stats_data: dict[str, Any]):
        self.console.print()
        self.console.print(f"[yellow]╭─ 📊 Statistics ─{'─' * 42}[/yellow]")
        for k, v in stats_data.items():
            self.console.print(f"[yellow]│[/yellow] [cyan]{k}:[/cyan] {v}")
        self.console.print("[yellow]╰──────────────────────────────────────────────────[/yellow]")

    def print_result(self, result: "OrchestratorResult"):
        self.print_stats({
            "workflow": result.workflow.value,
            "tasks": result.metadata.get("subtask_count", 0),
            "agents used": result.metadata.get("agents_used", 0),
            "artifacts": len(result.artifacts),
            "fix rounds": result.metadata.get("fix_rounds", 0),
            "time": f"{result.execution_time:.1f}s",
        })
        calls = stats.get_stats()
        if calls.total_calls > 0:
            self.console.print(Panel(Text(calls.get_summary()), title="[yellow]Model Calls[/yellow]", border_style="yellow"))


ui = ConsoleUI()
