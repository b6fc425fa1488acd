"""Application state owned by the interaction controller."""

from dataclasses import dataclass, field
from enum import Enum

from reaper.models import ProcessEntry
from reaper.view import SortKey

LOADING_MESSAGE = "Loading listening processes..."


class Mode(Enum):
    """UI modes of the interaction controller."""

    LISTING = "listing"
    CONFIRMING_KILL = "confirming_kill"
    SEARCHING = "searching"


class ConfirmChoice(Enum):
    """Highlighted button of the kill confirmation dialog."""

    YES = "yes"
    NO = "no"

    def toggled(self) -> "ConfirmChoice":
        """Return the other choice."""
        return ConfirmChoice.NO if self is ConfirmChoice.YES else ConfirmChoice.YES


@dataclass(slots=True)
class AppState:
    """Everything the front end needs to draw a frame."""

    all_processes: list[ProcessEntry] = field(default_factory=list)
    visible_processes: list[ProcessEntry] = field(default_factory=list)
    selected_index: int | None = None
    search_query: str = ""
    sort_key: SortKey = SortKey.PORT
    sort_ascending: bool = True
    mode: Mode = Mode.LISTING
    confirm_choice: ConfirmChoice = ConfirmChoice.YES
    status_message: str | None = LOADING_MESSAGE
    error_message: str | None = None
    loaded: bool = False
    discovery_failed: bool = False

    @property
    def selected_process(self) -> ProcessEntry | None:
        """Entry under the cursor in the visible view, if any."""
        if self.selected_index is None:
            return None
        if 0 <= self.selected_index < len(self.visible_processes):
            return self.visible_processes[self.selected_index]
        return None
