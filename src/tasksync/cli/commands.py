# src/tasksync/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, date, datetime

from ..core.errors import TaskSyncError
from ..core.state import AppState
from ..tasks.task_client import TaskStoreClient
from ..tasks.task_models import SortOption, Task
from ..tasks.views import counts, format_display_date, is_overdue, partition, sort_tasks

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[
    [AppState, list[str], CommandEmitter | None], str | Awaitable[str]
]

logger = logging.getLogger(__name__)

# How long a command waits for the snapshot that reflects its own write.
SNAPSHOT_WAIT_SECONDS = 2.0


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        result = handler(state, args, emit)
        if inspect.isawaitable(result):
            result = await result
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _client_or_none(state: AppState) -> TaskStoreClient | None:
    client = state.tasks
    if client is None or state.session.current_user is None:
        return None
    return client


def _with_error(state: AppState, text: str) -> str:
    client = state.tasks
    if client is not None and client.error:
        return f"{text}\n[ERROR] {client.error}"
    return text


def _resolve_number(state: AppState, raw: str) -> str | None:
    """Map a 1-based number from the last /list output to a task id."""
    try:
        n = int(raw)
    except ValueError:
        return None
    if n < 1 or n > len(state.listing):
        return None
    return state.listing[n - 1]


def parse_due(raw: str) -> tuple[date | datetime, bool]:
    """
    "@2026-10-20" -> (date, include_time=False)
    "@2026-10-20T14:30" -> (local datetime, include_time=True)
    """
    text = raw.lstrip("@").strip()
    if "T" in text or " " in text:
        dt = datetime.fromisoformat(text)
        if dt.tzinfo is None:
            dt = dt.astimezone()
        return dt, True
    return date.fromisoformat(text), False


async def _await_own_write(
        client: TaskStoreClient,
        before: int,
        emit: CommandEmitter | None = None,
) -> None:
    try:
        await client.wait_for_snapshot(before, timeout=SNAPSHOT_WAIT_SECONDS)
    except TimeoutError:
        if emit is not None:
            emit("Saved; the task list will refresh when the store catches up.")


def _format_task(n: int, task: Task, now: datetime) -> str:
    box = "[x]" if task.status else "[ ]"
    line = f"  {n}. {box} {task.description}"
    if task.due_date is not None:
        mark = "!" if is_overdue(task, now) else ""
        line += f"  (due {format_display_date(task.due_date, include_time=False)}{mark})"
    meta = []
    if task.created_at is not None:
        meta.append(f"created {format_display_date(task.created_at)}")
    if task.modified_at is not None:
        meta.append(f"modified {format_display_date(task.modified_at)}")
    if meta:
        line += "  - " + ", ".join(meta)
    return line


def render_listing(state: AppState, tasks: list[Task], now: datetime | None = None) -> str:
    """Render active + completed sections and remember the numbering in state.listing."""
    now = now or datetime.now(UTC)
    active, completed = partition(sort_tasks(tasks, state.sort_option))

    listing: list[str] = []
    lines = [f"Tasks ({len(active)})  sort: {state.sort_option.value}"]
    for task in active:
        listing.append(task.id)
        lines.append(_format_task(len(listing), task, now))
    if not active:
        lines.append("  No tasks yet. Add one with /add <text>.")

    if completed:
        if state.show_completed:
            lines.append(f"Completed Tasks ({len(completed)})")
            for task in completed:
                listing.append(task.id)
                lines.append(_format_task(len(listing), task, now))
        else:
            lines.append(f"Completed Tasks ({len(completed)}) hidden, /completed on to show")

    state.listing = listing
    return "\n".join(lines)


# ---- commands ----


def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    user = state.session.current_user
    client = state.tasks
    backend = getattr(state.settings, "backend", "memory")
    lines = [
        "Status:",
        f"  Backend: {backend}",
        f"  User: {user.email if user else '<signed out>'}",
        f"  Sort: {state.sort_option.value}",
        f"  Completed tasks: {'shown' if state.show_completed else 'hidden'}",
    ]
    if client is not None:
        n_active, n_done = counts(client.tasks)
        lines.append(f"  Feed: {client.state.value} ({n_active} active, {n_done} completed)")
        if client.error:
            lines.append(f"  Last error: {client.error}")
    if state.session.last_error:
        lines.append(f"  Auth error: {state.session.last_error}")
    return "\n".join(lines)


async def _auth(
        state: AppState,
        args: list[str],
        emit: CommandEmitter | None,
        *,
        sign_up: bool,
) -> str:
    usage = "/signup <email> <password>" if sign_up else "/login <email> <password>"
    if len(args) != 2:
        return f"Usage: {usage}"
    email, password = args
    if emit is not None:
        emit(f"{'Creating account for' if sign_up else 'Signing in as'} {email}...")
    try:
        if sign_up:
            identity = await state.session.sign_up(email, password)
        else:
            identity = await state.session.sign_in(email, password)
    except TaskSyncError as e:
        return f"{'Sign-up' if sign_up else 'Sign-in'} failed: {e}"

    await state.binding.wait_idle()
    client = state.tasks
    if client is not None:
        with contextlib.suppress(TimeoutError):
            await client.wait_for_snapshot(0, timeout=SNAPSHOT_WAIT_SECONDS)
    return _with_error(state, f"Logged in as: {identity.email}")


async def cmd_signup(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return await _auth(state, args, emit, sign_up=True)


async def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return await _auth(state, args, emit, sign_up=False)


async def cmd_logout(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.session.current_user is None:
        return "Not signed in."
    try:
        await state.session.sign_out()
    except TaskSyncError as e:
        return f"Sign-out failed: {e}"
    await state.binding.wait_idle()
    state.listing = []
    return "Signed out."


async def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /add Buy milk
    /add Pay rent @2026-11-01
    /add Call mom @2026-10-20T18:30
    """
    client = _client_or_none(state)
    if client is None:
        return "Sign in first (/login or /signup)."

    due: date | datetime | None = None
    include_time = False
    words: list[str] = []
    for word in args:
        if word.startswith("@") and len(word) > 1:
            try:
                due, include_time = parse_due(word)
            except ValueError:
                return f"Invalid due date: {word}. Use @YYYY-MM-DD or @YYYY-MM-DDTHH:MM."
        else:
            words.append(word)

    description = " ".join(words).strip()
    if not description:
        return "Usage: /add <text> [@YYYY-MM-DD[THH:MM]]"

    before = client.snapshot_count
    task_id = await client.add_task(description, due, include_time)
    if task_id is None:
        return _with_error(state, "Task was not added; your input was kept, try again.")

    await _await_own_write(client, before, emit)
    return _with_error(state, f"Task added: {description}")


def cmd_list(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    client = _client_or_none(state)
    if client is None:
        return "Sign in first (/login or /signup)."
    return _with_error(state, render_listing(state, client.tasks))


async def cmd_done(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    client = _client_or_none(state)
    if client is None:
        return "Sign in first (/login or /signup)."
    task_id = _resolve_number(state, args[0]) if args else None
    if task_id is None:
        return "Usage: /done <n> (numbers from the last /list)."

    mutation = await client.toggle_status(task_id)
    if mutation is None:
        return "That task is gone. Use /list to refresh."
    if mutation.error:
        return f"[ERROR] {mutation.error}"
    task = client.get(task_id)
    return f"Marked {'completed' if task and task.status else 'active'}: {mutation.before.description}"


async def cmd_edit(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    client = _client_or_none(state)
    if client is None:
        return "Sign in first (/login or /signup)."
    task_id = _resolve_number(state, args[0]) if args else None
    text = " ".join(args[1:]).strip()
    if task_id is None or not text:
        return "Usage: /edit <n> <new text>"

    task = client.get(task_id)
    if task is not None and task.status:
        return "Completed tasks cannot be edited. Use /done to reopen it first."

    before = client.snapshot_count
    if not await client.update_description(task_id, text):
        # The edit is not kept anywhere: the user has to re-enter it.
        return _with_error(state, f"Edit not saved. Re-enter it with /edit {args[0]} <text>.")
    await _await_own_write(client, before, emit)
    return f"Updated: {text}"


async def cmd_rm(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    client = _client_or_none(state)
    if client is None:
        return "Sign in first (/login or /signup)."
    task_id = _resolve_number(state, args[0]) if args else None
    if task_id is None:
        return "Usage: /rm <n> (numbers from the last /list)."

    mutation = await client.delete_task(task_id)
    if mutation is None:
        return "That task is gone. Use /list to refresh."
    if mutation.error:
        return f"[ERROR] {mutation.error}"
    state.listing = [tid for tid in state.listing if tid != task_id]
    return f"Deleted: {mutation.before.description}"


def cmd_sort(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    options = ", ".join(o.value for o in SortOption)
    if not args:
        return f"Sort is {state.sort_option.value}. Options: {options}."
    try:
        state.sort_option = SortOption.parse(args[0])
    except ValueError:
        return f"Unknown sort option: {args[0]}. Options: {options}."
    return f"Sort set to {state.sort_option.value}."


def cmd_completed(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /completed       -> show status
    /completed on    -> show completed tasks in /list
    /completed off   -> hide them
    """
    if not args:
        return f"Completed tasks are {'shown' if state.show_completed else 'hidden'}."
    arg = args[0].lower()
    if arg in ("on", "1", "true", "yes", "show"):
        state.show_completed = True
        return "Completed tasks will be shown."
    if arg in ("off", "0", "false", "no", "hide"):
        state.show_completed = False
        return "Completed tasks will be hidden."
    return "Usage: /completed on or /completed off."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show backend, user, sort and feed state.")
registry.register("signup", cmd_signup, help_text="Create an account: /signup <email> <password>.")
registry.register(
    "login", cmd_login, help_text="Sign in: /login <email> <password>.", aliases=["signin"]
)
registry.register("logout", cmd_logout, help_text="Sign out.", aliases=["signout"])
registry.register(
    "add", cmd_add, help_text="Add a task: /add <text> [@YYYY-MM-DD[THH:MM]].", aliases=["a"]
)
registry.register("list", cmd_list, help_text="List tasks (numbers are used by other commands).", aliases=["ls"])
registry.register("done", cmd_done, help_text="Toggle completed: /done <n>.", aliases=["toggle"])
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <n> <new text>.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <n>.", aliases=["del", "delete"])
registry.register(
    "sort", cmd_sort, help_text="Sort: /sort createdAsc | createdDesc | dueAsc | dueDesc."
)
registry.register(
    "completed", cmd_completed, help_text="Show/hide completed tasks: /completed on | off."
)
