# tests/test_commands.py

from __future__ import annotations

from datetime import date, datetime

import pytest

from tasksync.cli.bootstrap import shutdown_state, start_state
from tasksync.cli.commands import CommandRegistry, parse_due, registry


@pytest.mark.asyncio
async def test_command_registry_routes_sync_and_async_handlers(state) -> None:
    reg = CommandRegistry()
    called = {"sync": 0, "async": 0}

    def h_sync(state, args, emit):
        called["sync"] += 1
        return "sync " + " ".join(args)

    async def h_async(state, args, emit):
        called["async"] += 1
        if emit is not None:
            emit("note")
        return "async"

    reg.register("a", h_sync, "a", aliases=["alpha"])
    reg.register("b", h_async, "b")

    assert await reg.handle(state, "/a x y") == "sync x y"
    assert await reg.handle(state, "/ALPHA") == "sync "
    assert await reg.handle(state, "/b", emit=lambda _: None) == "async"
    assert called == {"sync": 2, "async": 1}
    assert "/a - a" in reg.build_help()


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


def test_parse_due() -> None:
    assert parse_due("@2026-10-20") == (date(2026, 10, 20), False)

    due, include_time = parse_due("@2026-10-20T14:30")
    assert include_time is True
    assert isinstance(due, datetime)
    assert due.tzinfo is not None
    assert (due.hour, due.minute) == (14, 30)

    with pytest.raises(ValueError):
        parse_due("@tomorrow")


@pytest.mark.asyncio
async def test_commands_require_sign_in(state) -> None:
    await start_state(state)
    try:
        assert await registry.handle(state, "/add Buy milk") == "Sign in first (/login or /signup)."
        assert await registry.handle(state, "/list") == "Sign in first (/login or /signup)."
        assert await registry.handle(state, "/logout") == "Not signed in."
    finally:
        await shutdown_state(state)


@pytest.mark.asyncio
async def test_task_flow_through_commands(state, store) -> None:
    await start_state(state)
    try:
        reply = await registry.handle(state, "/signup u@example.com pw123456")
        assert reply == "Logged in as: u@example.com"

        assert await registry.handle(state, "/add Buy milk") == "Task added: Buy milk"
        assert await registry.handle(state, "/add Pay rent @2026-11-01") == "Task added: Pay rent"

        listing = await registry.handle(state, "/list")
        assert "Tasks (2)  sort: createdAsc" in listing
        assert "1. [ ] Buy milk" in listing
        assert "2. [ ] Pay rent  (due Nov 1, 2026" in listing

        assert await registry.handle(state, "/done 1") == "Marked completed: Buy milk"
        listing = await registry.handle(state, "/list")
        assert "Tasks (1)" in listing
        assert "Completed Tasks (1)" in listing
        assert "2. [x] Buy milk" in listing

        assert await registry.handle(state, "/completed off") == "Completed tasks will be hidden."
        listing = await registry.handle(state, "/list")
        assert "[x]" not in listing
        assert len(state.listing) == 1

        assert await registry.handle(state, "/rm 1") == "Deleted: Pay rent"
        uid = state.session.current_user.uid
        assert [d.data["description"] for d in store.snapshot(uid)] == ["Buy milk"]

        assert await registry.handle(state, "/logout") == "Signed out."
        assert state.tasks is None
        assert store.subscriber_count(uid) == 0
    finally:
        await shutdown_state(state)


@pytest.mark.asyncio
async def test_failed_edit_asks_to_reenter(state, store) -> None:
    await start_state(state)
    try:
        await registry.handle(state, "/signup u@example.com pw123456")
        await registry.handle(state, "/add Buy milk")
        await registry.handle(state, "/list")

        store.fail("update_task", "permission denied")
        reply = await registry.handle(state, "/edit 1 Buy oat milk")

        assert reply.startswith("Edit not saved. Re-enter it with /edit 1 <text>.")
        assert "[ERROR] Error updating task " in reply
        assert "permission denied." in reply
    finally:
        await shutdown_state(state)


@pytest.mark.asyncio
async def test_edit_updates_description(state) -> None:
    await start_state(state)
    try:
        await registry.handle(state, "/signup u@example.com pw123456")
        await registry.handle(state, "/add Buy milk")
        await registry.handle(state, "/list")

        assert await registry.handle(state, "/edit 1 Buy oat milk") == "Updated: Buy oat milk"
        assert [t.description for t in state.tasks.tasks] == ["Buy oat milk"]
    finally:
        await shutdown_state(state)


@pytest.mark.asyncio
async def test_completed_tasks_cannot_be_edited(state) -> None:
    await start_state(state)
    try:
        await registry.handle(state, "/signup u@example.com pw123456")
        await registry.handle(state, "/add Buy milk")
        await registry.handle(state, "/list")
        await registry.handle(state, "/done 1")

        reply = await registry.handle(state, "/edit 1 Something else")
        assert reply.startswith("Completed tasks cannot be edited.")
    finally:
        await shutdown_state(state)


@pytest.mark.asyncio
async def test_failed_toggle_reports_error(state, store) -> None:
    await start_state(state)
    try:
        await registry.handle(state, "/signup u@example.com pw123456")
        await registry.handle(state, "/add Buy milk")
        await registry.handle(state, "/list")

        store.fail("update_task")
        assert await registry.handle(state, "/done 1") == "[ERROR] Error updating task: boom."
        assert state.tasks.tasks[0].status is False
    finally:
        await shutdown_state(state)


@pytest.mark.asyncio
async def test_auth_and_input_errors(state) -> None:
    await start_state(state)
    try:
        reply = await registry.handle(state, "/login u@example.com pw123456")
        assert reply == "Sign-in failed: Invalid email or password."
        assert await registry.handle(state, "/signup u@example.com") == (
            "Usage: /signup <email> <password>"
        )

        await registry.handle(state, "/signup u@example.com pw123456")
        assert (await registry.handle(state, "/add Buy milk @tomorrow")).startswith("Invalid due date")
        assert (await registry.handle(state, "/done 7")).startswith("Usage: /done <n>")
    finally:
        await shutdown_state(state)


@pytest.mark.asyncio
async def test_view_settings_commands(state) -> None:
    assert await registry.handle(state, "/sort dueasc") == "Sort set to dueAsc."
    assert (await registry.handle(state, "/sort alphabetical")).startswith("Unknown sort option")
    assert await registry.handle(state, "/completed") == "Completed tasks are shown."
    assert await registry.handle(state, "/completed maybe") == "Usage: /completed on or /completed off."

    status = await registry.handle(state, "/status")
    assert "Backend: memory" in status
    assert "User: <signed out>" in status
    assert "Sort: dueAsc" in status


@pytest.mark.asyncio
async def test_sign_in_emits_progress_line(state) -> None:
    emitted: list[str] = []
    await start_state(state)
    try:
        await registry.handle(state, "/signup u@example.com pw123456")
        await registry.handle(state, "/logout")

        reply = await registry.handle(state, "/login u@example.com pw123456", emit=emitted.append)

        assert reply == "Logged in as: u@example.com"
        assert emitted == ["Signing in as u@example.com..."]
    finally:
        await shutdown_state(state)
