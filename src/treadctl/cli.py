"""
Command line interface and REPL for treadmill discovery and control.

With a sub-command the requested operation runs once and exits. Without
one an interactive REPL starts.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.history import InMemoryHistory

from .commands import COMMANDS, CommandCompleter, get_command
from .controller import TreadmillController, parse_address
from .core import DEFAULT_SCAN_TIMEOUT, SCAN_SECONDS_MAX, SPEED_MAX, SPEED_MIN
from .discovery import Peripheral, find_treadmills, scan_for_treadmill
from .display import DisplayManager
from .exceptions import TreadctlError, TreadmillNotFoundError

logger = logging.getLogger(__name__)


def scan_seconds(value: str) -> int:
    """argparse type for a scan window in whole seconds."""
    try:
        seconds = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid seconds: {value!r}") from None
    if not 0 <= seconds <= SCAN_SECONDS_MAX:
        raise argparse.ArgumentTypeError(
            f"seconds must be between 0 and {SCAN_SECONDS_MAX}"
        )
    return seconds


def speed_value(value: str) -> int:
    """argparse type for a speed value."""
    try:
        speed = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid speed: {value!r}") from None
    if not SPEED_MIN <= speed <= SPEED_MAX:
        raise argparse.ArgumentTypeError(
            f"speed must be between {SPEED_MIN} and {SPEED_MAX}"
        )
    return speed


class TreadCtlREPL:
    """Interactive REPL for treadmill discovery and control."""

    def __init__(self, adapters: Optional[List[str]] = None) -> None:
        """Initialize REPL with controller and display manager."""
        self.adapters = adapters or []
        self.controller = TreadmillController(
            adapter=self.adapters[0] if self.adapters else None
        )
        self.display = DisplayManager()
        self.completer = CommandCompleter()
        self.running = False
        self.device: Optional[Peripheral] = None

        self.session: PromptSession = PromptSession(
            completer=self.completer,
            history=InMemoryHistory(),
            enable_history_search=True,
        )

    async def run(self) -> None:
        """Run the main REPL loop."""
        self.running = True
        self.display.print_banner()

        try:
            while self.running:
                try:
                    text = await self.session.prompt_async(self._get_prompt())
                    if text.strip():
                        await self._handle_input(text.strip())
                except KeyboardInterrupt:
                    self.display.console.print()
                    continue
        except EOFError:
            await self.cmd_quit([])
        finally:
            self.running = False

    def _get_prompt(self) -> FormattedText:
        """Get prompt showing the last found treadmill."""
        if self.device is not None:
            return FormattedText(
                [("class:prompt", f"[{self.device.display_name}] > ")]
            )
        return FormattedText([("class:prompt", "[no device] > ")])

    async def _handle_input(self, text: str) -> None:
        """Parse and dispatch command.

        Args:
            text: Raw user input text
        """
        parts = text.split()
        cmd_name = parts[0].lower()
        args = parts[1:]

        cmd = get_command(cmd_name)
        if not cmd:
            self.display.print_error(
                f"Unknown command: {cmd_name}. Type 'help' for available commands."
            )
            return

        handler = getattr(self, cmd.handler)
        try:
            await handler(args)
        except (TreadctlError, ValueError) as e:
            self.display.print_error(str(e))
        except Exception as e:
            self.display.print_error(f"Command failed: {e}")
            logger.exception("Command exception")

    def _remember(self, peripherals: List[Peripheral]) -> None:
        for peripheral in peripherals:
            if peripheral.address not in self.completer.addresses:
                self.completer.addresses.append(peripheral.address)
        if peripherals:
            self.device = peripherals[0]

    def _timeout_arg(self, args: list) -> float:
        if not args:
            return DEFAULT_SCAN_TIMEOUT
        try:
            return scan_seconds(args[0])
        except argparse.ArgumentTypeError as e:
            raise ValueError(str(e)) from None

    def _address_arg(self, args: list) -> str:
        if args:
            return parse_address(args[0])
        if self.device is None:
            raise ValueError("No device address given and no treadmill found yet")
        return self.device.address

    # ========== Command Handlers ==========

    async def cmd_scan(self, args: list) -> None:
        """Scan for the first treadmill."""
        timeout = self._timeout_arg(args)
        self.display.print_info(f"Scanning for up to {timeout:g}s...")
        try:
            peripheral = await scan_for_treadmill(timeout, adapters=self.adapters)
        except TreadmillNotFoundError:
            self.display.print_error("No treadmill device found")
            return
        self._remember([peripheral])
        self.display.print_device(peripheral)

    async def cmd_scan_all(self, args: list) -> None:
        """Scan the full window and list every treadmill."""
        timeout = self._timeout_arg(args)
        self.display.print_info(f"Scanning for {timeout:g}s...")
        peripherals = await find_treadmills(timeout, adapters=self.adapters)
        if not peripherals:
            self.display.print_error("No treadmill device found")
            return
        self._remember(peripherals)
        self.display.print_devices(peripherals)

    async def cmd_speed(self, args: list) -> None:
        """Power on a treadmill and set its speed."""
        if not args:
            self.display.print_error("Usage: speed [address] <speed>")
            return
        try:
            speed = speed_value(args[-1])
        except argparse.ArgumentTypeError as e:
            self.display.print_error(str(e))
            return
        address = self._address_arg(args[:-1])

        self.display.print_info(f"Going to set {address} to {speed}")
        await self.controller.apply_speed(address, speed)
        self.display.print_info("Speed command sent")

    async def cmd_services(self, args: list) -> None:
        """Show the GATT services of a device."""
        address = self._address_arg(args)
        services = await self.controller.list_services(address)
        self.display.print_services(services)

    async def cmd_help(self, args: list) -> None:
        """Show all available commands."""
        self.display.print_help(COMMANDS)

    async def cmd_quit(self, args: list) -> None:
        """Exit the REPL."""
        self.display.console.print("[cyan]Goodbye![/cyan]")
        self.running = False


async def run_cli_command(
    args: argparse.Namespace, display: Optional[DisplayManager] = None
) -> int:
    """Run a single CLI command.

    Returns:
        Process exit status
    """
    display = display or DisplayManager()
    adapters = args.adapter or []

    try:
        if args.command == "scan":
            timeout = DEFAULT_SCAN_TIMEOUT if args.seconds is None else args.seconds
            if args.all:
                peripherals = await find_treadmills(timeout, adapters=adapters)
                if not peripherals:
                    raise TreadmillNotFoundError("No treadmill device found")
                display.print_devices(peripherals)
            else:
                peripheral = await scan_for_treadmill(timeout, adapters=adapters)
                display.print_device(peripheral)

        elif args.command == "set-speed":
            # Fail on a malformed address before touching the adapter
            address = parse_address(args.device_address)
            display.console.print(
                f"Going to set {address} to {args.speed}", highlight=False
            )
            controller = TreadmillController(adapter=adapters[0] if adapters else None)
            await controller.apply_speed(address, args.speed)
            display.console.print("Done", highlight=False)

        elif args.command == "services":
            address = parse_address(args.device_address)
            controller = TreadmillController(adapter=adapters[0] if adapters else None)
            services = await controller.list_services(address)
            display.print_services(services)

        else:
            display.print_error(f"Unknown command: {args.command}")
            return 1

    except TreadmillNotFoundError:
        display.err_console.print("No treadmill device found", highlight=False)
        return 1
    except TreadctlError as e:
        display.print_error(str(e))
        return 1

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="treadctl",
        description="Discover and control BLE treadmills",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  treadctl                              # Start interactive REPL
  treadctl scan                         # Find the first treadmill
  treadctl scan 30 --all                # List every treadmill seen in 30s
  treadctl set-speed AA:BB:CC:DD:EE:FF 5
  treadctl services AA:BB:CC:DD:EE:FF   # Show the GATT service tree
        """,
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--adapter",
        action="append",
        metavar="NAME",
        help=(
            "Bluetooth adapter to use, e.g. hci0. Repeat to scan with several "
            "(scan --all only, other commands use the first)"
        ),
    )

    subparsers = parser.add_subparsers(dest="command")

    scan = subparsers.add_parser("scan", help="Scan for treadmills")
    scan.add_argument(
        "seconds",
        nargs="?",
        type=scan_seconds,
        help=f"Scan window in seconds (default {DEFAULT_SCAN_TIMEOUT:g})",
    )
    scan.add_argument(
        "--all",
        action="store_true",
        help="Scan the full window and list every treadmill",
    )

    set_speed = subparsers.add_parser("set-speed", help="Set speed of the treadmill")
    set_speed.add_argument("device_address", help="Device address")
    set_speed.add_argument("speed", type=speed_value, help="Target speed")

    services = subparsers.add_parser("services", help="Show GATT services of a device")
    services.add_argument("device_address", help="Device address")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the treadctl command."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )

    if args.command is None:
        try:
            repl = TreadCtlREPL(adapters=args.adapter)
            asyncio.run(repl.run())
        except KeyboardInterrupt:
            print("\nInterrupted")
            sys.exit(0)
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        return

    try:
        status = asyncio.run(run_cli_command(args))
    except KeyboardInterrupt:
        print("\nInterrupted")
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(status)


if __name__ == "__main__":
    main()
