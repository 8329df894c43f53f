# src/tasksync/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime
from typing import Protocol

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)


class LineReader(Protocol):
    async def readline(self, prompt: str) -> str | None:
        """Next input line, or None at end of input."""
        ...


class StdinLineReader:
    """
    Reads stdin on a daemon thread and hands lines to the event loop.

    The thread is not an executor worker, so asyncio.run() never waits for a
    pending input() at shutdown and Ctrl+C exits right away.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._lines: asyncio.Queue[str | None] = asyncio.Queue()
        self._wanted = threading.Event()
        self._prompt = ""
        self._thread = threading.Thread(target=self._run, name="tasksync-stdin", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while True:
            # Prompt only when the shell asks for the next line.
            self._wanted.wait()
            self._wanted.clear()
            try:
                line: str | None = input(self._prompt)
            except (EOFError, OSError):
                line = None
            try:
                self._loop.call_soon_threadsafe(self._lines.put_nowait, line)
            except RuntimeError:
                return  # loop closed
            if line is None:
                return

    async def readline(self, prompt: str) -> str | None:
        self._prompt = prompt
        self._wanted.set()
        return await self._lines.get()


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def _prompt(state: AppState) -> str:
    user = state.session.current_user
    who = user.email if user and user.email else "guest"
    return f">>> {who}: "


async def run_console_loop(state: AppState, reader: LineReader | None = None) -> None:
    """
    Interactive shell. Lines starting with "/" are commands; any other
    non-empty line is added as a new task (like pressing Enter in the task input).

    Ctrl+C cancels the running task; the caller's cleanup then runs as usual.
    """
    reader = reader or StdinLineReader()
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Type a task to add it, /help for commands, /exit to quit.\n")

    while True:
        raw = await reader.readline(_prompt(state))
        if raw is None:
            logger.info("Console EOF received, exiting.")
            break

        user_input = raw.strip()
        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        line = user_input if user_input.startswith("/") else f"/add {user_input}"

        try:
            reply = await command_registry.handle(state, line, emit=_print_ts)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is not None:
            _print_ts(reply)

    logger.info("Console connector finished.")
