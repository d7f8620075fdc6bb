"""
Display manager for Rich-based console output.

Handles all user-facing output: discovered devices, GATT service trees,
progress and error messages.
"""

from typing import List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .controller import ServiceInfo
from .core import (
    TREADMILL_COMMAND_CHAR_UUID,
    TREADMILL_NOTIFY_CHAR_UUID,
    TREADMILL_SERVICE_UUID,
)
from .discovery import Peripheral


class DisplayManager:
    """Manages console output with Rich library."""

    def __init__(
        self, console: Optional[Console] = None, err_console: Optional[Console] = None
    ):
        """Initialize display manager.

        Args:
            console: Rich Console for regular output (creates one if None)
            err_console: Rich Console for errors (stderr console if None)
        """
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def print_banner(self) -> None:
        """Print startup banner."""
        panel = Panel(
            "[bold cyan]TreadCtl - Treadmill Control[/bold cyan]\n"
            "[dim]Type 'help' for commands, 'quit' to exit[/dim]",
            expand=False,
        )
        self.console.print(panel)

    def print_device(self, peripheral: Peripheral) -> None:
        """Print one discovered treadmill."""
        self.console.print(
            f"Found device: {escape(peripheral.display_name)} ({peripheral.address})",
            highlight=False,
        )

    def print_devices(self, peripherals: Sequence[Peripheral]) -> None:
        for peripheral in peripherals:
            self.print_device(peripheral)

    def print_services(self, services: List[ServiceInfo]) -> None:
        """Display a GATT service tree.

        Args:
            services: Services read from the device
        """
        table = Table(title="GATT Services", show_header=True)
        table.add_column("Handle", style="magenta", justify="right")
        table.add_column("Type", style="cyan")
        table.add_column("UUID", style="white")
        table.add_column("Properties", style="yellow")

        for service in services:
            uuid = service.uuid
            if uuid == TREADMILL_SERVICE_UUID:
                uuid = f"[bold]{uuid}[/bold] (treadmill)"
            table.add_row(str(service.handle), "Service", uuid, "")
            for char in service.characteristics:
                uuid = char.uuid
                if uuid == TREADMILL_COMMAND_CHAR_UUID:
                    uuid = f"[bold]{uuid}[/bold] (command)"
                elif uuid == TREADMILL_NOTIFY_CHAR_UUID:
                    uuid = f"{uuid} (notify)"
                table.add_row(
                    str(char.handle),
                    "  Characteristic",
                    uuid,
                    ", ".join(char.properties),
                )
                for descriptor in char.descriptors:
                    table.add_row(
                        str(descriptor.handle), "    Descriptor", descriptor.uuid, ""
                    )

        self.console.print(table)

    def print_error(self, message: str) -> None:
        """Print red error message to stderr.

        Args:
            message: Error message text
        """
        self.err_console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)

    def print_info(self, message: str) -> None:
        """Print blue info message.

        Args:
            message: Info message text
        """
        self.console.print(f"[cyan]Info:[/cyan] {escape(message)}", highlight=False)

    def print_help(self, commands: list) -> None:
        """Display command reference.

        Args:
            commands: List of Command objects
        """
        table = Table(title="Available Commands", show_header=True)
        table.add_column("Command", style="cyan")
        table.add_column("Aliases", style="magenta")
        table.add_column("Description", style="white")
        table.add_column("Usage", style="yellow")

        for cmd in commands:
            aliases = ", ".join(cmd.aliases) if cmd.aliases else "-"
            table.add_row(cmd.name, aliases, cmd.description, escape(cmd.usage))

        self.console.print(table)
        self.console.print(
            "[dim]Keyboard shortcuts: Ctrl+C to interrupt, Ctrl+D to exit[/dim]"
        )
