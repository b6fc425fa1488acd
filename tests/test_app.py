"""Tests for reaper application."""

from datetime import datetime

import pytest
from conftest import FakeInspector
from textual.widgets import Footer

from reaper.app import ProcessTable, ReaperApp, format_memory, format_start_time
from reaper.state import Mode


def test_format_memory_megabytes():
    """Test format_memory below a gigabyte."""
    assert format_memory(12.345) == "12.3M"


def test_format_memory_gigabytes():
    """Test format_memory switches to gigabytes."""
    assert format_memory(2048.0) == "2.0G"


def test_format_start_time_today():
    """Test format_start_time shows a clock time for today."""
    now = datetime(2024, 3, 5, 18, 0)
    assert format_start_time(datetime(2024, 3, 5, 9, 7, 3), now) == "09:07:03"


def test_format_start_time_other_day():
    """Test format_start_time shows a date for earlier days."""
    now = datetime(2024, 3, 5, 18, 0)
    assert format_start_time(datetime(2024, 2, 1, 9, 0), now) == "Feb 01"


def test_format_start_time_unknown():
    """Test format_start_time with no start time."""
    assert format_start_time(None) == "-"


def make_app(inspector) -> ReaperApp:
    return ReaperApp(inspector=inspector, refresh_interval=60, kill_grace=0)


@pytest.mark.asyncio
async def test_app_creation(fake_inspector):
    """Test ReaperApp can be instantiated."""
    app = make_app(fake_inspector)
    assert app.title == "reaper"
    assert app.controller.state.mode is Mode.LISTING
    assert not app.controller.state.loaded


@pytest.mark.asyncio
async def test_app_compose(fake_inspector):
    """Test ReaperApp composes correctly."""
    app = make_app(fake_inspector)
    async with app.run_test() as pilot:
        assert pilot.app.query_one("#title-bar") is not None
        assert pilot.app.query_one("#process-table") is not None
        assert pilot.app.query_one(Footer) is not None


@pytest.mark.asyncio
async def test_app_loads_processes(fake_inspector):
    """Test the first refresh fills the table."""
    app = make_app(fake_inspector)
    async with app.run_test() as pilot:
        await pilot.pause(0.2)
        table = pilot.app.query_one(ProcessTable)
        assert app.controller.state.loaded
        assert table.row_count == 4
        assert table.cursor_row == 0


@pytest.mark.asyncio
async def test_app_navigation(fake_inspector):
    """Test arrow keys move the selection and the table cursor."""
    app = make_app(fake_inspector)
    async with app.run_test() as pilot:
        await pilot.pause(0.2)
        await pilot.press("down", "down")
        assert app.controller.state.selected_index == 2
        assert pilot.app.query_one(ProcessTable).cursor_row == 2

        await pilot.press("up", "up", "up")
        assert app.controller.state.selected_index == 3


@pytest.mark.asyncio
async def test_app_search_and_cancel(fake_inspector):
    """Test typing a query filters the table and escape restores it."""
    app = make_app(fake_inspector)
    async with app.run_test() as pilot:
        await pilot.pause(0.2)
        table = pilot.app.query_one(ProcessTable)

        await pilot.press("slash", "n", "o", "d", "e")
        assert app.controller.state.mode is Mode.SEARCHING
        assert app.controller.state.search_query == "node"
        assert pilot.app.query_one("#search-bar").display
        assert table.row_count == 1

        await pilot.press("escape")
        assert app.controller.state.mode is Mode.LISTING
        assert table.row_count == 4
        assert app.controller.running


@pytest.mark.asyncio
async def test_app_kill_flow(fake_inspector):
    """Test enter opens the dialog and confirming kills the selected process."""
    app = make_app(fake_inspector)
    async with app.run_test() as pilot:
        await pilot.pause(0.2)

        await pilot.press("enter")
        assert app.controller.state.mode is Mode.CONFIRMING_KILL
        assert pilot.app.query_one("#confirm-layer").display

        await pilot.press("enter")
        assert fake_inspector.calls == [("terminate", "80")]
        assert app.controller.state.mode is Mode.LISTING
        assert not pilot.app.query_one("#confirm-layer").display
        assert "80" in app.controller.state.status_message
        assert pilot.app.query_one(ProcessTable).row_count == 3


@pytest.mark.asyncio
async def test_app_sort_binding(fake_inspector):
    """Test that 's' cycles the sort key."""
    app = make_app(fake_inspector)
    async with app.run_test() as pilot:
        await pilot.pause(0.2)
        initial_sort = app.controller.state.sort_key
        await pilot.press("s")
        assert app.controller.state.sort_key != initial_sort


@pytest.mark.asyncio
async def test_app_discovery_error_screen():
    """Test a failed discovery shows the error panel instead of the table."""
    inspector = FakeInspector([])
    inspector.discover_error = "lsof command failed: permission denied"
    app = make_app(inspector)
    async with app.run_test() as pilot:
        await pilot.pause(0.2)
        assert app.controller.state.discovery_failed
        assert pilot.app.query_one("#error-panel").display
        assert not pilot.app.query_one(ProcessTable).display

        inspector.discover_error = None
        await pilot.press("r")
        assert not pilot.app.query_one("#error-panel").display
        assert pilot.app.query_one(ProcessTable).display


@pytest.mark.asyncio
async def test_app_quit_binding(fake_inspector):
    """Test that 'q' quits."""
    app = make_app(fake_inspector)
    async with app.run_test() as pilot:
        await pilot.pause(0.2)
        await pilot.press("q")
        assert not app.controller.running


@pytest.mark.asyncio
async def test_app_bindings_follow_mode(fake_inspector):
    """Test only the current mode's actions are enabled."""
    app = make_app(fake_inspector)
    async with app.run_test() as pilot:
        await pilot.pause(0.2)
        assert app.check_action("kill", ())
        assert not app.check_action("apply_search", ())
        assert not app.check_action("confirm_yes", ())
        assert not app.check_action("clear_query", ())

        await pilot.press("slash")
        assert app.check_action("apply_search", ())
        assert not app.check_action("quit", ())

        await pilot.press("escape", "enter")
        assert app.controller.state.mode is Mode.CONFIRMING_KILL
        assert app.check_action("confirm_choice", ())
        assert not app.check_action("kill", ())


@pytest.mark.asyncio
async def test_app_bound_letters_are_query_text_while_searching(fake_inspector):
    """Test letters bound in other modes are typed into the query."""
    app = make_app(fake_inspector)
    async with app.run_test() as pilot:
        await pilot.pause(0.2)
        await pilot.press("slash", "q", "r", "s", "y")
        assert app.controller.state.search_query == "qrsy"
        assert app.controller.state.mode is Mode.SEARCHING
        assert app.controller.running

        await pilot.press("backspace", "enter")
        assert app.controller.state.search_query == "qrs"
        assert app.controller.state.mode is Mode.LISTING


@pytest.mark.asyncio
async def test_app_error_screen_disables_listing_actions():
    """Test only retry and quit are enabled while discovery is failing."""
    inspector = FakeInspector([])
    inspector.discover_error = "boom"
    app = make_app(inspector)
    async with app.run_test() as pilot:
        await pilot.pause(0.2)
        assert app.check_action("refresh", ())
        assert app.check_action("quit", ())
        assert not app.check_action("kill", ())
        assert not app.check_action("search", ())
