"""
Command definitions and auto-completion for REPL.

Defines all available commands with metadata and provides a completer
for prompt_toolkit auto-completion.
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document


@dataclass
class Command:
    """Command definition with metadata."""

    name: str
    aliases: List[str]
    description: str
    usage: str
    handler: str


COMMANDS = [
    Command(
        name="scan",
        aliases=["s"],
        description="Scan for the first treadmill in range",
        usage="scan [seconds]",
        handler="cmd_scan",
    ),
    Command(
        name="scan-all",
        aliases=["sa"],
        description="Scan the full window and list every treadmill",
        usage="scan-all [seconds]",
        handler="cmd_scan_all",
    ),
    Command(
        name="speed",
        aliases=["sp"],
        description="Power on a treadmill and set its speed",
        usage="speed [address] <speed>",
        handler="cmd_speed",
    ),
    Command(
        name="services",
        aliases=["sv"],
        description="Show the GATT services of a device",
        usage="services [address]",
        handler="cmd_services",
    ),
    Command(
        name="help",
        aliases=["h", "?"],
        description="Show all available commands",
        usage="help",
        handler="cmd_help",
    ),
    Command(
        name="quit",
        aliases=["q", "exit"],
        description="Exit the REPL",
        usage="quit",
        handler="cmd_quit",
    ),
]


def get_command(name: str) -> Optional[Command]:
    """Get command by name or alias.

    Args:
        name: Command name or alias

    Returns:
        Command object if found, None otherwise
    """
    for cmd in COMMANDS:
        if cmd.name == name or name in cmd.aliases:
            return cmd
    return None


class CommandCompleter(Completer):
    """Auto-completion for command names and known device addresses."""

    def __init__(self) -> None:
        self._command_names = set()
        self._command_aliases = set()
        self.addresses: List[str] = []

        for cmd in COMMANDS:
            self._command_names.add(cmd.name)
            self._command_aliases.update(cmd.aliases)

    def get_completions(self, document: Document, complete_event) -> Any:  # type: ignore[no-untyped-def]
        """Get completion suggestions for current input.

        Args:
            document: Current input document
            complete_event: Completion event

        Yields:
            Completion objects for matching commands/arguments
        """
        text = document.text_before_cursor.lstrip()
        parts = text.split()

        if not text:
            return

        if len(parts) <= 1 and not text.endswith(" "):
            partial_cmd = parts[0].lower() if parts else ""
            all_names = self._command_names | self._command_aliases

            for name in sorted(all_names):
                if name.startswith(partial_cmd):
                    yield Completion(
                        name[len(partial_cmd) :],
                        start_position=-len(partial_cmd),
                        display=name,
                    )
            return

        # Addresses found by earlier scans complete the first argument
        cmd = get_command(parts[0].lower())
        if cmd is None or cmd.handler not in ("cmd_speed", "cmd_services"):
            return
        partial = "" if text.endswith(" ") else parts[-1].upper()
        if len(parts) > 2 or (len(parts) == 2 and text.endswith(" ")):
            return
        for address in self.addresses:
            if address.startswith(partial):
                yield Completion(
                    address,
                    start_position=-len(partial),
                    display=address,
                )
