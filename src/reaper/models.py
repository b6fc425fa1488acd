"""Data models for reaper."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

LISTEN_SUFFIX = "(LISTEN)"


class Protocol(Enum):
    """Transport protocol of a listening socket."""

    TCP = "TCP"
    UDP = "UDP"


@dataclass(slots=True, frozen=True)
class ProcessEntry:
    """Immutable row describing one listening socket and its owning process."""

    command: str
    pid: str  # Kept as text, lsof emits variable-width numbers
    user: str
    fd: str
    socket_type: str
    device: str
    size_off: str
    node: str
    name: str  # Raw "address:port (LISTEN)" text
    protocol: Protocol = Protocol.TCP
    memory_mb: float = 0.0
    start_time: datetime | None = None

    @property
    def port(self) -> str:
        """Port text derived from the socket name."""
        return extract_port(self.name)


def extract_port(name: str) -> str:
    """
    Derive the port text from a raw socket name.

    Takes the text after the last colon and drops the ``(LISTEN)`` suffix.
    Names without a colon are returned unchanged.
    """
    if ":" not in name:
        return name
    tail = name.rsplit(":", 1)[1]
    return tail.replace(LISTEN_SUFFIX, "").strip()


def port_number(entry: ProcessEntry) -> int:
    """Numeric port of an entry, 0 when the port text is not a number."""
    try:
        return int(entry.port)
    except ValueError:
        return 0


def pid_number(entry: ProcessEntry) -> int:
    """Numeric pid of an entry, 0 when the pid text is not a number."""
    try:
        return int(entry.pid)
    except ValueError:
        return 0
