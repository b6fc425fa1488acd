"""Snapshot bookkeeping: keeps the visible view and cursor in step with the data."""

from collections.abc import Sequence

from reaper.models import ProcessEntry
from reaper.state import AppState, Mode
from reaper.view import compute_view


def clamp_selection(index: int | None, length: int) -> int | None:
    """Clamp a cursor index to a view of the given length."""
    if length == 0:
        return None
    if index is None:
        return 0
    return max(0, min(index, length - 1))


def recompute_view(state: AppState, reset_selection: bool = False) -> None:
    """
    Rebuild ``visible_processes`` from the snapshot, query and sort settings.

    Args:
        state: State to update in place.
        reset_selection: Put the cursor on the first row instead of clamping.
    """
    state.visible_processes = compute_view(
        state.all_processes,
        state.search_query,
        state.sort_key,
        state.sort_ascending,
    )
    index = 0 if reset_selection else state.selected_index
    state.selected_index = clamp_selection(index, len(state.visible_processes))


def apply_snapshot(state: AppState, snapshot: Sequence[ProcessEntry]) -> None:
    """
    Replace the snapshot and recompute the view.

    A query that no longer matches anything is cleared so a refresh never
    leaves the operator looking at an empty list. The query is left alone
    while it is being edited.
    """
    state.all_processes = list(snapshot)
    recompute_view(state)
    if (
        state.search_query
        and not state.visible_processes
        and state.mode is not Mode.SEARCHING
    ):
        state.search_query = ""
        recompute_view(state)
