from datetime import datetime
from typing import List, Mapping

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

console = Console()


class ServiceUI:
    def __init__(self):
        self.console = console

    def display_welcome(self):
        self.console.rule("[bold cyan]TCPPING - TCP Latency Service[/bold cyan]")

    def display_startup(self, memory_mb=None):
        self.console.print("[bold]Starting server...[/bold]")
        self.console.print(f"[dim]Startup Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}[/dim]")
        if memory_mb is not None:
            self.console.print(f"[dim]Memory Usage: {memory_mb}MB[/dim]")

    def display_env_validation(self, required: List[str], environ: Mapping[str, str]):
        """
        Prints one line per required variable. Values are never echoed.
        """
        lines = []
        for name in required:
            if environ.get(name):
                lines.append(f"[green]✓[/green] {name}: Configured")
            else:
                lines.append(f"[red]✗[/red] {name}: Missing")
        self.console.print(Panel("\n".join(lines), title="Environment Validation", border_style="blue"))

    def display_missing_env(self, missing: List[str]):
        self.console.print(f"\n[bold red]Missing required environment variables: {', '.join(missing)}[/bold red]")
        self.console.print("Please check your .env file and ensure all required variables are set.")

    def display_ready(self, port: int):
        self.console.print(Panel.fit(f"[bold green]SYSTEM READY[/bold green] - listening on port {port}",
                                     border_style="green"))

    def display_probe_start(self, ip: str, config):
        ports = ", ".join(str(p) for p in config.ports)
        self.console.print(Panel.fit(
            f"[bold green]Probing {ip}[/bold green] "
            f"[dim]({config.attempts} attempts, ports {ports}, timeout {config.timeout_ms}ms)[/dim]",
            border_style="blue"
        ))

    def display_probe_result(self, result, average_ms: int):
        """
        Displays the per-attempt timings in a Rich table.
        """
        table = Table(title=f"TCP Latency for {result.host}", show_header=True, header_style="bold magenta")
        table.add_column("#", style="cyan", justify="right")
        table.add_column("Port", style="yellow", justify="right")
        table.add_column("Time (ms)", style="green", justify="right")

        for i, (elapsed, port) in enumerate(zip(result.times, result.ports_hit), start=1):
            table.add_row(str(i), str(port), str(elapsed))

        self.console.print(table)
        self.console.print(f"\n[bold]Average: {average_ms}ms[/bold] "
                           f"[dim](reported port {result.port_used})[/dim]")
        if result.failed_attempts:
            self.console.print(f"[yellow]{result.failed_attempts} of {result.attempts} attempts failed on every port[/yellow]")

    # Key generator

    def display_keygen_menu(self):
        self.console.print("\n[bold cyan]Key Generator[/bold cyan]")
        self.console.print("1. Generate JWT Token (for API testing)")
        self.console.print("2. Generate API Key (for INTERNAL_API_KEY)")
        self.console.print("3. Generate Secure API Key (with prefix)")
        self.console.print("4. Generate Custom JWT Token")
        self.console.print("5. Generate Service JWT (long-lived)")
        self.console.print("6. Generate Permanent Service JWT (never expires)")
        self.console.print("7. Exit")

    def get_keygen_choice(self) -> int:
        return IntPrompt.ask("[bold blue]Select an option (1-7)[/bold blue]",
                             choices=["1", "2", "3", "4", "5", "6", "7"])

    def ask(self, question: str, default: str = None) -> str:
        return Prompt.ask(f"[bold blue]{question}[/bold blue]", default=default)

    def ask_int(self, question: str, default: int) -> int:
        return IntPrompt.ask(f"[bold blue]{question}[/bold blue]", default=default)

    def confirm(self, question: str) -> bool:
        return Confirm.ask(f"[bold yellow]{question}[/bold yellow]", default=False)

    def show_token(self, token: str, note: str, port: int = 8080, curl: bool = False):
        self.console.print("\n[bold green]JWT Token generated successfully![/bold green]\n")
        self.console.print(token, soft_wrap=True, markup=False)
        if curl:
            self.console.print("\n[bold]Use with curl:[/bold]")
            self.console.print(
                f"curl -X POST http://localhost:{port}/ping \\\n"
                f"  -H \"Authorization: Bearer {token}\" \\\n"
                f"  -H \"Content-Type: application/json\" \\\n"
                f"  -d '{{\"ip_address\": \"8.8.8.8\"}}'",
                soft_wrap=True, markup=False
            )
        else:
            self.console.print("\n[bold]Use in server-to-server communication:[/bold]")
            self.console.print(f"Authorization: Bearer {token}", soft_wrap=True, markup=False)
        self.console.print(f"\n[dim]{note}[/dim]")

    def show_api_key(self, key: str):
        self.console.print("\n[bold green]API Key generated successfully![/bold green]\n")
        self.console.print(key, soft_wrap=True, markup=False)
        self.console.print("\n[bold]Add this to your .env file:[/bold]")
        self.console.print(f"INTERNAL_API_KEY={key}", soft_wrap=True, markup=False)

    def show_message(self, msg, style="bold red"):
        self.console.print(f"[{style}]{escape(str(msg))}[/{style}]")
