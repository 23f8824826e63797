#!/usr/bin/env python3
"""
Gibson Interactive Client

A command-line client for talking to a Gibson server by hand.

Usage:
    gibson-cli                                  # Default address (unix:///var/run/gibson.sock)
    gibson-cli --address tcp://127.0.0.1:10128  # TCP server
    gibson-cli --address /tmp/gibson.sock       # Unix socket
    gibson-cli --debug                          # Enable debug logging
    echo "PING" | gibson-cli                    # Non-interactive

Environment Variables:
    GIBSON_ADDRESS          - Server address
    GIBSON_CONNECT_TIMEOUT  - Connection timeout in seconds
    GIBSON_TIMEOUT          - Per-request timeout in seconds
    GIBSON_DEBUG            - Enable debug mode (true/false)
    GIBSON_LOG_LEVEL        - Log level when not in debug mode
"""

import argparse
import asyncio
import logging
import queue
import shlex
import sys
import threading
from typing import Callable, List, Optional

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default

from .config.settings import settings
from .network.client import GibsonClient
from .protocol.commands import COMMANDS, Opcode, Value, ValueKind
from .protocol.errors import GibsonError

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Gibson: interactive cache client",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--address",
        type=str,
        default=settings.ADDRESS,
        help="Server address (tcp://host:port, host:port or a socket path)",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.REQUEST_TIMEOUT,
        help="Per-request timeout in seconds (0 = wait forever)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stderr),
        ]
    )


def format_value(value: Value) -> str:
    """
    Render a reply for the terminal.

    Maps are printed one "key = value" pair per line, raw payloads as
    OK when empty.

    Examples:
        >>> format_value(Value.text("bar"))
        'bar'
        >>> format_value(Value.mapping({"a": Value.integer(1)}))
        'a = 1'
    """
    if value.kind == ValueKind.MAP:
        if not value.data:
            return "(empty)"
        return "\n".join(f"{key} = {format_value(item)}" for key, item in value.data.items())
    if value.kind == ValueKind.RAW:
        return repr(value.data) if value.data else "OK"
    return str(value.data)


def print_help() -> None:
    """Print help message."""
    names = ", ".join(op.name for op in Opcode)
    print(f"""
Gibson Commands:
----------------
  SET <ttl> <key> <value>   Store a value (ttl 0 = never expires)
  GET <key>                 Retrieve a value
  DEL <key>                 Delete a key
  MGET <prefix>             Retrieve every key matching a prefix
  ...

  All commands: {names}

Client Commands:
----------------
  help                      Show this help message
  exit                      Exit the client
""")


async def run_command(client: GibsonClient, line: str) -> str:
    """Execute one input line and return the text to print."""
    parts = shlex.split(line)
    name = parts[0].upper()
    if name not in COMMANDS:
        return f"ERROR unknown command: {parts[0]}"

    try:
        value = await client.query(COMMANDS[name], *parts[1:])
    except GibsonError as exc:
        return f"ERROR {exc}"
    except asyncio.TimeoutError:
        return "ERROR request timed out"
    return format_value(value)


def _deliver(future: asyncio.Future, line: Optional[str], error: Optional[BaseException]) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(line)


class LineReader:
    """
    Reads input lines on a daemon thread.

    input() blocks until Enter is pressed. Running it on a daemon thread
    instead of the loop's default executor means an interrupted session
    can shut down without waiting for that call to return.

    Usage:
        reader = LineReader()
        line = await reader.readline(">>> ")   # None at end of input
    """

    def __init__(self, input_func: Callable[[str], str] = input):
        self._input = input_func
        self._requests: "queue.Queue" = queue.Queue()
        self._eof = False
        self.thread = threading.Thread(target=self._run, name="gibson-stdin", daemon=True)

    async def readline(self, prompt: str = "") -> Optional[str]:
        """Return the next line, or None once input is exhausted."""
        if self._eof:
            return None

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._requests.put((prompt, loop, future))
        if not self.thread.is_alive():
            self.thread.start()
        return await future

    def _run(self) -> None:
        while True:
            prompt, loop, future = self._requests.get()
            line, error = None, None
            try:
                line = self._input(prompt)
            except EOFError:
                self._eof = True
            except Exception as exc:
                error = exc

            try:
                loop.call_soon_threadsafe(_deliver, future, line, error)
            except RuntimeError:
                # the loop is closed, nobody is waiting any more
                return
            if self._eof:
                return


async def repl(client: GibsonClient, interactive: bool, reader: LineReader = None) -> None:
    reader = reader if reader is not None else LineReader()
    while True:
        prompt = ">>> " if interactive else ""
        line = await reader.readline(prompt)
        if line is None:
            break

        line = line.strip()
        if not line:
            continue

        lower_cmd = line.lower()
        if lower_cmd == "help":
            print_help()
            continue
        if lower_cmd in ("exit", "quit"):
            break

        try:
            print(await run_command(client, line))
        except ValueError as exc:
            print(f"ERROR {exc}")

        if lower_cmd.split()[0] == "end" or not client.is_connected:
            break


async def run(args: argparse.Namespace) -> int:
    client = GibsonClient(args.address, timeout=args.timeout)
    try:
        await client.connect()
    except (OSError, asyncio.TimeoutError) as exc:
        logger.error(f"Unable to connect to {client.endpoint}: {exc}")
        return 1

    interactive = sys.stdin.isatty()
    if interactive:
        print(f"Connected to {client.endpoint}. Type 'help' for commands.\n")

    try:
        await repl(client, interactive)
    finally:
        await client.close()
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the client."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)

    try:
        code = asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\nInterrupted. Goodbye!")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
