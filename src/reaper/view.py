"""Filtering and sorting of the listening process snapshot."""

from collections.abc import Callable, Sequence
from enum import Enum
from functools import cmp_to_key

from reaper.models import ProcessEntry, pid_number, port_number


class SortKey(Enum):
    """Sort keys for the process table, in cycle order."""

    PORT = "port"
    PID = "pid"
    USER = "user"
    COMMAND = "command"
    MEMORY = "memory"
    START_TIME = "start_time"

    @property
    def label(self) -> str:
        """Human readable name of the key."""
        return self.value.replace("_", " ").title()

    def next(self) -> "SortKey":
        """Return the key following this one, wrapping around."""
        keys = list(SortKey)
        return keys[(keys.index(self) + 1) % len(keys)]


def _compare(a, b) -> int:
    # NaN and other incomparable pairs fall through to equal
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def _compare_start_time(a: ProcessEntry, b: ProcessEntry) -> int:
    if a.start_time is None and b.start_time is None:
        return 0
    if a.start_time is None:
        return 1
    if b.start_time is None:
        return -1
    return _compare(a.start_time, b.start_time)


_COMPARATORS: dict[SortKey, Callable[[ProcessEntry, ProcessEntry], int]] = {
    SortKey.PORT: lambda a, b: _compare(port_number(a), port_number(b)),
    SortKey.PID: lambda a, b: _compare(pid_number(a), pid_number(b)),
    SortKey.USER: lambda a, b: _compare(a.user, b.user),
    SortKey.COMMAND: lambda a, b: _compare(a.command, b.command),
    SortKey.MEMORY: lambda a, b: _compare(a.memory_mb, b.memory_mb),
    SortKey.START_TIME: _compare_start_time,
}


def matches_query(entry: ProcessEntry, query: str) -> bool:
    """
    Check whether an entry matches a search query.

    Command, user and socket name match case-insensitively; the pid matches
    as a plain substring.
    """
    if not query:
        return True
    needle = query.lower()
    return (
        needle in entry.command.lower()
        or needle in entry.user.lower()
        or needle in entry.name.lower()
        or query in entry.pid
    )


def compute_view(
    processes: Sequence[ProcessEntry],
    query: str,
    sort_key: SortKey,
    ascending: bool,
) -> list[ProcessEntry]:
    """
    Filter and sort a snapshot into the visible ordering.

    Descending order negates the comparator, so entries with an unknown
    start time come first when sorting by start time descending.
    """
    compare = _COMPARATORS[sort_key]
    if ascending:
        key = cmp_to_key(compare)
    else:
        key = cmp_to_key(lambda a, b: -compare(a, b))
    return sorted((p for p in processes if matches_query(p, query)), key=key)
