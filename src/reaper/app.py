"""reaper - Main Textual application."""

from datetime import datetime

from rich.markup import escape
from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.timer import Timer
from textual.widgets import DataTable, Footer, Static

from reaper.controller import AppController
from reaper.inspector import ProcessInspector
from reaper.models import ProcessEntry
from reaper.state import AppState, ConfirmChoice, Mode

SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"
ANIMATION_INTERVAL = 0.1

# Bound actions live in exactly one mode; the footer shows only those
MODE_ACTIONS = {
    Mode.LISTING: frozenset(
        {"quit", "refresh", "cursor_up", "cursor_down", "kill", "search", "sort", "sort_by", "clear_query"}
    ),
    Mode.SEARCHING: frozenset({"apply_search", "cancel_search", "delete_char"}),
    Mode.CONFIRMING_KILL: frozenset({"toggle_choice", "confirm_yes", "confirm_no", "confirm_choice"}),
}
MODE_BOUND_ACTIONS = frozenset().union(*MODE_ACTIONS.values())
ERROR_SCREEN_ACTIONS = frozenset({"quit", "refresh"})


def format_memory(memory_mb: float) -> str:
    """Format resident memory in megabytes."""
    if memory_mb >= 1024:
        return f"{memory_mb / 1024:.1f}G"
    return f"{memory_mb:.1f}M"


def format_start_time(start_time: datetime | None, now: datetime | None = None) -> str:
    """Format a start time as a clock time today, a date otherwise."""
    if start_time is None:
        return "-"
    now = now or datetime.now()
    if start_time.date() == now.date():
        return start_time.strftime("%H:%M:%S")
    return start_time.strftime("%b %d")


class ProcessTable(DataTable, can_focus=False):
    """Table of visible processes; the row cursor mirrors the selection."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._rendered: tuple[tuple[ProcessEntry, ...], int | None] | None = None

    def on_mount(self) -> None:
        """Add the columns when mounted."""
        self.cursor_type = "row"
        self.add_column("Command", key="command", width=15)
        self.add_column("PID", key="pid", width=8)
        self.add_column("User", key="user", width=10)
        self.add_column("Proto", key="protocol", width=5)
        self.add_column("Port", key="port", width=6)
        self.add_column("Mem", key="memory", width=8)
        self.add_column("Started", key="start_time", width=8)
        self.add_column("FD", key="fd", width=5)
        self.add_column("Type", key="type", width=5)
        self.add_column("Node", key="node", width=5)
        self.add_column("Name", key="name")

    def show_processes(self, processes: list[ProcessEntry], selected_index: int | None) -> None:
        """Redraw the rows if the view or the cursor changed."""
        rendered = (tuple(processes), selected_index)
        if rendered == self._rendered:
            return
        self._rendered = rendered

        self.clear()
        for proc in processes:
            self.add_row(
                Text(proc.command),
                Text(proc.pid),
                Text(proc.user),
                Text(proc.protocol.value),
                Text(proc.port),
                Text(format_memory(proc.memory_mb)),
                Text(format_start_time(proc.start_time)),
                Text(proc.fd),
                Text(proc.socket_type),
                Text(proc.node),
                Text(proc.name),
            )

        self.show_cursor = selected_index is not None
        if selected_index is not None:
            self.move_cursor(row=selected_index)


class ReaperApp(App):
    """Main reaper application."""

    TITLE = "reaper"
    SUB_TITLE = "Listening Process Killer"

    CSS = """
    Screen {
        layout: vertical;
        layers: base overlay;
    }

    #title-bar {
        height: 1;
        padding: 0 1;
        background: $primary;
        color: $text;
        text-style: bold;
    }

    #search-bar {
        height: 1;
        padding: 0 1;
        display: none;
    }

    #error-panel {
        height: 1fr;
        border: solid $error;
        content-align: center middle;
        text-align: center;
        display: none;
    }

    #status-line {
        height: 1;
        padding: 0 1;
    }

    #confirm-layer {
        layer: overlay;
        width: 100%;
        height: 100%;
        align: center middle;
        display: none;
    }

    #confirm-dialog {
        width: 50;
        height: auto;
        padding: 1 2;
        border: thick $warning;
        background: $panel;
        text-align: center;
    }
    """

    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        Binding("ctrl+c,ctrl+q", "interrupt", "Quit", show=False, priority=True),
        # Listing
        Binding("q,escape", "quit", "Quit", priority=True),
        Binding("r", "refresh", "Refresh", priority=True),
        Binding("up,k", "cursor_up", "Up", show=False, priority=True),
        Binding("down,j", "cursor_down", "Down", show=False, priority=True),
        Binding("enter", "kill", "Kill", priority=True),
        Binding("slash", "search", "Search", priority=True),
        Binding("s", "sort", "Sort", priority=True),
        Binding("1", "sort_by(1)", "Sort by", show=False, priority=True),
        Binding("2", "sort_by(2)", "Sort by", show=False, priority=True),
        Binding("3", "sort_by(3)", "Sort by", show=False, priority=True),
        Binding("4", "sort_by(4)", "Sort by", show=False, priority=True),
        Binding("5", "sort_by(5)", "Sort by", show=False, priority=True),
        Binding("6", "sort_by(6)", "Sort by", show=False, priority=True),
        Binding("backspace", "clear_query", "Edit query", priority=True),
        # Searching
        Binding("enter", "apply_search", "Apply", priority=True),
        Binding("escape", "cancel_search", "Cancel", priority=True),
        Binding("backspace", "delete_char", "Delete", priority=True),
        # Confirming a kill
        Binding("left,right,h,l,tab", "toggle_choice", "Choose", priority=True),
        Binding("enter", "confirm_choice", "Confirm", priority=True),
        Binding("y", "confirm_yes", "Yes", priority=True),
        Binding("n,escape", "confirm_no", "No", priority=True),
    ]

    def __init__(
        self,
        inspector: ProcessInspector | None = None,
        refresh_interval: float = 1.0,
        kill_grace: float = 0.5,
    ) -> None:
        """
        Initialize the ReaperApp.

        Args:
            inspector: Process inspector to use; a default one when omitted.
            refresh_interval: Seconds between data refreshes.
            kill_grace: Seconds to wait after a kill before refreshing.
        """
        super().__init__()
        self._controller = AppController(inspector or ProcessInspector(), kill_grace=kill_grace)
        self._refresh_interval = max(0.1, refresh_interval)
        self._spinner_frame = 0
        self._spinner_timer: Timer | None = None

    @property
    def controller(self) -> AppController:
        """Get the interaction controller."""
        return self._controller

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield Static(id="title-bar")
        yield Static(id="search-bar")
        yield ProcessTable(id="process-table")
        yield Static(id="error-panel")
        yield Static(id="status-line")
        yield Footer()
        yield Container(Static(id="confirm-dialog"), id="confirm-layer")

    def on_mount(self) -> None:
        """Start the refresh and animation timers."""
        self._spinner_timer = self.set_interval(ANIMATION_INTERVAL, self._advance_spinner)
        self.set_interval(self._refresh_interval, self._refresh)
        # Draw the loading frame before the first blocking discovery
        self.call_after_refresh(self._refresh)
        self._render_state()

    def _advance_spinner(self) -> None:
        if self._controller.state.loaded:
            if self._spinner_timer is not None:
                self._spinner_timer.stop()
            return
        self._spinner_frame = (self._spinner_frame + 1) % len(SPINNER_FRAMES)
        self._render_state()

    def _refresh(self) -> None:
        self._controller.refresh()
        self._render_state()

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        """Enable only the actions of the current mode."""
        if action not in MODE_BOUND_ACTIONS:
            return True
        state = self._controller.state
        if action not in MODE_ACTIONS[state.mode]:
            return False
        if state.discovery_failed and action not in ERROR_SCREEN_ACTIONS:
            return False
        if action == "clear_query":
            return bool(state.search_query)
        return True

    def on_key(self, event: events.Key) -> None:
        """Forward keys no binding took, such as query text, to the controller."""
        event.stop()
        event.prevent_default()
        self._press(event.key, event.character)

    def _press(self, key: str, character: str | None = None) -> None:
        self._controller.handle_key(key, character)
        if not self._controller.running:
            self.exit()
            return
        self._render_state()

    def action_interrupt(self) -> None:
        """Quit from any mode."""
        self._controller.quit()
        self.exit()

    def action_quit(self) -> None:
        """Quit the application."""
        self._press("q")

    def action_refresh(self) -> None:
        """Take a fresh snapshot now."""
        self._press("r")

    def action_cursor_up(self) -> None:
        self._press("up")

    def action_cursor_down(self) -> None:
        self._press("down")

    def action_kill(self) -> None:
        """Ask to kill the selected process."""
        self._press("enter")

    def action_search(self) -> None:
        """Start editing the search query."""
        self._press("slash")

    def action_sort(self) -> None:
        """Cycle through sort keys."""
        self._press("s")

    def action_sort_by(self, number: int) -> None:
        """Sort by the key with the given shortcut number."""
        self._press(str(number))

    def action_clear_query(self) -> None:
        self._press("backspace")

    def action_apply_search(self) -> None:
        self._press("enter")

    def action_cancel_search(self) -> None:
        self._press("escape")

    def action_delete_char(self) -> None:
        self._press("backspace")

    def action_toggle_choice(self) -> None:
        self._press("tab")

    def action_confirm_choice(self) -> None:
        self._press("enter")

    def action_confirm_yes(self) -> None:
        self._press("y")

    def action_confirm_no(self) -> None:
        self._press("n")

    def _render_state(self) -> None:
        """Draw the controller state into the widgets."""
        state = self._controller.state

        self.query_one("#title-bar", Static).update(self._title_text(state))

        search_bar = self.query_one("#search-bar", Static)
        search_bar.display = state.mode is Mode.SEARCHING or bool(state.search_query)
        cursor = "█" if state.mode is Mode.SEARCHING else ""
        search_bar.update(f"Search: {escape(state.search_query)}{cursor}")

        table = self.query_one(ProcessTable)
        error_panel = self.query_one("#error-panel", Static)
        if state.discovery_failed:
            table.display = False
            error_panel.display = True
            error_panel.update(
                f"[b red]Error:[/b red] {escape(state.error_message or '')}\n\n"
                "Press 'r' to retry, 'q' to quit."
            )
        else:
            error_panel.display = False
            table.display = True
            table.show_processes(state.visible_processes, state.selected_index)

        status_line = self.query_one("#status-line", Static)
        if state.error_message and not state.discovery_failed:
            status_line.update(f"[red]✗ {escape(state.error_message)}[/red]")
        elif state.status_message:
            status_line.update(f"[green]✓ {escape(state.status_message)}[/green]")
        else:
            status_line.update("")

        self.refresh_bindings()

        confirm_layer = self.query_one("#confirm-layer", Container)
        confirm_layer.display = state.mode is Mode.CONFIRMING_KILL
        if state.mode is Mode.CONFIRMING_KILL:
            self.query_one("#confirm-dialog", Static).update(self._dialog_text(state))

    def _title_text(self, state: AppState) -> str:
        if not state.loaded and not state.discovery_failed:
            spinner = SPINNER_FRAMES[self._spinner_frame]
            return f"Reaper - Process Monitor  {spinner} {escape(state.status_message or '')}"
        arrow = "▲" if state.sort_ascending else "▼"
        return (
            f"Reaper - Process Monitor  "
            f"{len(state.visible_processes)}/{len(state.all_processes)} listening  "
            f"Sort: {state.sort_key.label} {arrow}"
        )

    @staticmethod
    def _dialog_text(state: AppState) -> str:
        proc = state.selected_process
        if proc is None:
            return "Kill Process?"
        yes, no = " Yes ", " No "
        if state.confirm_choice is ConfirmChoice.YES:
            yes = f"[reverse]{yes}[/reverse]"
        else:
            no = f"[reverse]{no}[/reverse]"
        return (
            "[b yellow]Kill Process?[/b yellow]\n\n"
            f"Command: {escape(proc.command)}\n"
            f"PID: {escape(proc.pid)}\n"
            f"User: {escape(proc.user)}\n"
            f"Port: {escape(proc.port)}\n\n"
            f"{yes}   {no}"
        )
