"""Interaction controller: turns key presses and timer ticks into state changes."""

import logging
import time
from collections.abc import Callable

from reaper.inspector import DiscoveryError, KillError, ProcessInspector
from reaper.registry import apply_snapshot, clamp_selection, recompute_view
from reaper.state import LOADING_MESSAGE, AppState, ConfirmChoice, Mode
from reaper.view import SortKey

logger = logging.getLogger(__name__)

QUIT_KEYS = frozenset({"q", "Q", "escape", "ctrl+c"})
REFRESH_KEYS = frozenset({"r", "R"})
UP_KEYS = frozenset({"up", "k"})
DOWN_KEYS = frozenset({"down", "j"})
TOGGLE_KEYS = frozenset({"left", "right", "h", "l", "tab"})

# Direct sort key shortcuts, in cycle order
SORT_KEY_SHORTCUTS = {str(i): key for i, key in enumerate(SortKey, start=1)}


class AppController:
    """
    Owns the AppState and implements every operator action.

    The front end forwards keys to ``handle_key`` and calls ``refresh`` on
    its timer; it never mutates the state itself.
    """

    def __init__(
        self,
        inspector: ProcessInspector,
        kill_grace: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the AppController.

        Args:
            inspector: Source of snapshots and termination signals.
            kill_grace: Seconds to wait after a successful kill before
                refreshing, so the OS can release the socket.
            sleep: Blocking sleep used for the grace period.
        """
        self.state = AppState()
        self.running = True
        self._inspector = inspector
        self._kill_grace = kill_grace
        self._sleep = sleep
        self._search_backup: tuple[str, int | None] | None = None

    def handle_key(self, key: str, character: str | None = None) -> None:
        """Dispatch a key press according to the current mode."""
        handlers = {
            Mode.LISTING: self._handle_listing_key,
            Mode.SEARCHING: self._handle_search_key,
            Mode.CONFIRMING_KILL: self._handle_confirm_key,
        }
        handlers[self.state.mode](key, character)

    def _handle_listing_key(self, key: str, character: str | None) -> None:
        state = self.state
        state.status_message = None
        if not state.discovery_failed:
            state.error_message = None

        if key in QUIT_KEYS:
            self.quit()
        elif key in REFRESH_KEYS:
            self.refresh(user_initiated=True)
        elif state.discovery_failed:
            # Only retry and quit are offered on the error screen
            return
        elif key in UP_KEYS:
            self.select_previous()
        elif key in DOWN_KEYS:
            self.select_next()
        elif key == "enter":
            self.enter_confirm_mode()
        elif key == "slash":
            self.enter_search_mode()
        elif key == "s":
            self.cycle_sort()
        elif key in SORT_KEY_SHORTCUTS:
            self.set_sort_key(SORT_KEY_SHORTCUTS[key])
        elif key == "backspace" and state.search_query:
            self.search_backspace()

    def _handle_search_key(self, key: str, character: str | None) -> None:
        if key == "escape":
            self.cancel_search()
        elif key == "enter":
            self.apply_search()
        elif key == "backspace":
            self.search_backspace()
        elif character and character.isprintable():
            self.search_append(character)

    def _handle_confirm_key(self, key: str, character: str | None) -> None:
        if key in TOGGLE_KEYS:
            self.toggle_confirm_choice()
        elif key in ("y", "Y"):
            self.confirm_kill()
        elif key in ("n", "N", "escape"):
            self.cancel_kill()
        elif key == "enter":
            self.execute_confirm_choice()

    def quit(self) -> None:
        """Stop the run loop."""
        self.running = False

    def refresh(self, user_initiated: bool = False) -> None:
        """
        Take a fresh snapshot and recompute the view.

        A failed discovery keeps no partial list; the front end shows the
        error until a later refresh succeeds.
        """
        try:
            snapshot = self._inspector.discover()
        except DiscoveryError as e:
            logger.warning("Discovery failed: %s", e)
            self.state.error_message = f"Failed to get processes: {e}"
            self.state.status_message = None
            self.state.discovery_failed = True
            # The error screen offers only retry and quit; the query is kept
            self.state.mode = Mode.LISTING
            self._search_backup = None
            return

        logger.debug(
            "Refreshed %d listening sockets (user_initiated=%s)",
            len(snapshot),
            user_initiated,
        )
        apply_snapshot(self.state, snapshot)
        if not self.state.loaded:
            self.state.loaded = True
            if self.state.status_message == LOADING_MESSAGE:
                self.state.status_message = None
        if self.state.discovery_failed:
            self.state.discovery_failed = False
            self.state.error_message = None

    def select_next(self) -> None:
        """Move the cursor down, wrapping to the first row."""
        count = len(self.state.visible_processes)
        if count == 0:
            return
        index = self.state.selected_index
        self.state.selected_index = 0 if index is None else (index + 1) % count

    def select_previous(self) -> None:
        """Move the cursor up, wrapping to the last row."""
        count = len(self.state.visible_processes)
        if count == 0:
            return
        index = self.state.selected_index
        self.state.selected_index = count - 1 if index is None else (index - 1) % count

    def enter_confirm_mode(self) -> None:
        """Open the kill confirmation for the selected row."""
        if not self.state.visible_processes:
            return
        self.state.confirm_choice = ConfirmChoice.YES
        self.state.mode = Mode.CONFIRMING_KILL

    def enter_search_mode(self) -> None:
        """Start editing the search query."""
        self._search_backup = (self.state.search_query, self.state.selected_index)
        self.state.mode = Mode.SEARCHING

    def cycle_sort(self) -> SortKey:
        """Advance to the next sort key and return it."""
        self.state.sort_key = self.state.sort_key.next()
        recompute_view(self.state)
        return self.state.sort_key

    def set_sort_key(self, key: SortKey) -> None:
        """
        Sort by ``key``.

        Choosing the active key flips the direction; a new key starts
        descending.
        """
        if key is self.state.sort_key:
            self.state.sort_ascending = not self.state.sort_ascending
        else:
            self.state.sort_key = key
            self.state.sort_ascending = False
        recompute_view(self.state)

    def search_append(self, text: str) -> None:
        """Append text to the query and put the cursor on the first match."""
        self.state.search_query += text
        recompute_view(self.state, reset_selection=True)

    def search_backspace(self) -> None:
        """Delete the last query character and put the cursor on the first match."""
        if not self.state.search_query:
            return
        self.state.search_query = self.state.search_query[:-1]
        recompute_view(self.state, reset_selection=True)

    def cancel_search(self) -> None:
        """Leave search mode, restoring the query and cursor from before it."""
        query, index = self._search_backup or ("", None)
        self._search_backup = None
        self.state.search_query = query
        self.state.mode = Mode.LISTING
        recompute_view(self.state)
        self.state.selected_index = clamp_selection(index, len(self.state.visible_processes))

    def apply_search(self) -> None:
        """Leave search mode keeping the query."""
        self._search_backup = None
        self.state.mode = Mode.LISTING

    def toggle_confirm_choice(self) -> None:
        """Switch the highlighted confirmation button."""
        self.state.confirm_choice = self.state.confirm_choice.toggled()

    def execute_confirm_choice(self) -> None:
        """Act on the highlighted confirmation button."""
        if self.state.confirm_choice is ConfirmChoice.YES:
            self.confirm_kill()
        else:
            self.cancel_kill()

    def cancel_kill(self) -> None:
        """Close the confirmation without killing anything."""
        self.state.mode = Mode.LISTING

    def confirm_kill(self) -> None:
        """
        Kill the selected process, escalating to SIGKILL if SIGTERM fails.

        The target is looked up again now since the view may have changed
        while the dialog was open. Only a double failure is reported.
        """
        state = self.state
        state.mode = Mode.LISTING
        process = state.selected_process
        if process is None:
            return

        try:
            self._inspector.terminate(process.pid)
        except KillError as e:
            logger.info("SIGTERM to %s failed (%s), escalating", process.pid, e)
            try:
                self._inspector.force_terminate(process.pid)
            except KillError as force_err:
                logger.warning("Could not kill %s: %s / %s", process.pid, e, force_err)
                state.error_message = (
                    f"Failed to kill process: {e} | Force kill also failed: {force_err}"
                )
                state.status_message = None
                return
            self._kill_succeeded(f"Force killed process {process.command} ({process.pid})")
            return

        self._kill_succeeded(f"Successfully killed process {process.command} ({process.pid})")

    def _kill_succeeded(self, message: str) -> None:
        logger.info(message)
        self.state.status_message = message
        self.state.error_message = None
        if self._kill_grace > 0:
            self._sleep(self._kill_grace)
        self.refresh()
