"""Terminal rendering for the orchestrator CLI (rich)"""

from typing import Any, Dict, List

from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table


class TerminalUI:
    """Renders orchestrator results in the terminal"""

    def __init__(self, console: Console = None):
        self.console = console or Console()

    def show_agents(self, rows: List[Dict[str, Any]]):
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Agent", style="bold")
        table.add_column("Target")
        table.add_column("Dependencies")
        table.add_column("Loaded", justify="center")
        table.add_column("Description")

        for row in rows:
            table.add_row(
                row["name"],
                row.get("execution_target") or "-",
                ", ".join(row.get("dependencies") or []) or "-",
                "✅" if row.get("loaded") else "",
                row.get("description") or "",
            )
        self.console.print(Panel(table, title=f"Registered Agents ({len(rows)})", border_style="cyan"))

    def show_ask_result(self, result: Dict[str, Any]):
        if not result.get("success"):
            self.show_error(result.get("error") or "Request failed", result.get("fallback"))
            return

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("#", justify="right")
        table.add_column("Agent")
        table.add_column("Action")
        table.add_column("Status")
        for index, step in enumerate(result.get("intents_processed") or [], start=1):
            status = "[green]ok[/green]" if step.get("success") else f"[red]{step.get('error')}[/red]"
            table.add_row(str(index), step.get("agent") or "", str(step.get("action") or ""), status)

        title = (
            f"Intent: {result.get('primary_intent')} | "
            f"workflow {result.get('workflow_status')} ({result.get('steps')}/{result.get('total_steps')} steps)"
        )
        self.console.print(Panel(table, title=title, border_style="green"))

    def show_local_result(self, result: Dict[str, Any]):
        style = "green" if result.get("success") else "red"
        subtitle = f"{result.get('handled_by')} · {result.get('method')}"
        self.console.print(Panel(result.get("response") or "", title="Assistant", subtitle=subtitle, border_style=style))

    def show_json(self, data: Dict[str, Any]):
        self.console.print(JSON.from_data(data, default=str))

    def show_error(self, message: str, hint: str = None):
        self.console.print(f"[bold red]❌ {message}[/bold red]")
        if hint:
            self.console.print(f"[dim]{hint}[/dim]")
