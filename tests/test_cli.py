"""
Tests for the interactive client helpers

Run with: python -m pytest tests/test_cli.py -v
"""

import asyncio
import sys
import threading
import time

import pytest

from gibson.cli import LineReader, format_value, parse_args, repl, run_command
from gibson.network.client import GibsonClient
from gibson.protocol.commands import Value


class TestFormatValue:
    """Test reply rendering."""

    def test_scalars(self):
        assert format_value(Value.text("bar")) == "bar"
        assert format_value(Value.integer(-3)) == "-3"

    def test_raw(self):
        assert format_value(Value.raw(b"")) == "OK"
        assert format_value(Value.raw(b"\x01")) == "b'\\x01'"

    def test_map(self):
        value = Value.mapping({"a": Value.text("1"), "b": Value.integer(2)})
        assert format_value(value) == "a = 1\nb = 2"

    def test_empty_map(self):
        assert format_value(Value.mapping({})) == "(empty)"


class TestParseArgs:
    """Test command line parsing."""

    def test_address_and_debug(self):
        args = parse_args(["--address", "tcp://127.0.0.1:10128", "--debug", "--timeout", "2.5"])

        assert args.address == "tcp://127.0.0.1:10128"
        assert args.debug is True
        assert args.timeout == 2.5


@pytest.mark.asyncio
@pytest.mark.integration
class TestRunCommand:
    """Test executing typed command lines."""

    async def test_commands(self, gibson_server):
        async with GibsonClient(f"127.0.0.1:{gibson_server.port}") as client:
            assert await run_command(client, "SET 0 greeting 'hello world'") == "hello world"
            assert await run_command(client, "get greeting") == "hello world"
            assert await run_command(client, "MGET greet") == "greeting = hello world"
            assert await run_command(client, "PING") == "OK"

    async def test_errors(self, gibson_server):
        async with GibsonClient(f"127.0.0.1:{gibson_server.port}") as client:
            assert await run_command(client, "GET nothing") == "ERROR Invalid key, item not found"
            assert await run_command(client, "FLY away") == "ERROR unknown command: FLY"


def scripted_input(lines):
    """input() replacement that replays lines, then signals end of input."""
    remaining = iter(lines)

    def read(prompt=""):
        try:
            return next(remaining)
        except StopIteration:
            raise EOFError from None
    return read


class TestLineReader:
    """Test the background stdin reader."""

    @pytest.mark.asyncio
    async def test_reads_until_eof(self):
        reader = LineReader(scripted_input(["PING", "GET k"]))

        assert await reader.readline(">>> ") == "PING"
        assert await reader.readline(">>> ") == "GET k"
        assert await reader.readline(">>> ") is None
        assert await reader.readline(">>> ") is None

    @pytest.mark.asyncio
    async def test_input_errors_propagate(self):
        def broken(prompt=""):
            raise OSError("stdin closed")

        with pytest.raises(OSError):
            await LineReader(broken).readline()

    def test_blocked_input_does_not_delay_shutdown(self):
        """A pending input() call must not keep asyncio.run() from returning."""
        release = threading.Event()
        timer = threading.Timer(5.0, release.set)
        timer.start()

        def blocking(prompt=""):
            release.wait()
            raise EOFError

        reader = LineReader(blocking)

        async def session():
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(reader.readline(), timeout=0.1)

        started = time.monotonic()
        try:
            asyncio.run(session())
            elapsed = time.monotonic() - started
        finally:
            release.set()
            timer.cancel()

        assert reader.thread.daemon
        assert elapsed < 2.0

    def test_readline_history_enabled(self):
        pytest.importorskip("readline")
        assert "readline" in sys.modules


@pytest.mark.asyncio
@pytest.mark.integration
class TestRepl:
    """Test the read-eval-print loop."""

    async def test_session(self, gibson_server, capsys):
        reader = LineReader(scripted_input(["SET 0 k v", "", "get k", "exit", "PING"]))

        async with GibsonClient(f"127.0.0.1:{gibson_server.port}") as client:
            await repl(client, interactive=False, reader=reader)

        assert capsys.readouterr().out == "v\nv\n"
        assert [opcode for opcode, _ in gibson_server.requests] == [1, 3]

    async def test_stops_at_end_of_input(self, gibson_server, capsys):
        reader = LineReader(scripted_input(["PING"]))

        async with GibsonClient(f"127.0.0.1:{gibson_server.port}") as client:
            await repl(client, interactive=False, reader=reader)

        assert capsys.readouterr().out == "OK\n"
