"""Shared fixtures for reaper tests."""

from datetime import datetime

import pytest

from reaper.inspector import DiscoveryError, KillError
from reaper.models import ProcessEntry, Protocol


def make_entry(
    command: str = "node",
    pid: str = "1234",
    user: str = "alice",
    name: str = "*:3000 (LISTEN)",
    memory_mb: float = 0.0,
    start_time: datetime | None = None,
    protocol: Protocol = Protocol.TCP,
) -> ProcessEntry:
    """Build a ProcessEntry with sensible lsof-like defaults."""
    return ProcessEntry(
        command=command,
        pid=pid,
        user=user,
        fd="22u",
        socket_type="IPv4",
        device="0x1",
        size_off="0t0",
        node="TCP",
        name=name,
        protocol=protocol,
        memory_mb=memory_mb,
        start_time=start_time,
    )


class FakeInspector:
    """In-memory stand-in for ProcessInspector."""

    def __init__(self, snapshot: list[ProcessEntry] | None = None) -> None:
        self.snapshot = list(snapshot or [])
        self.discover_error: str | None = None
        self.terminate_error: str | None = None
        self.force_error: str | None = None
        self.calls: list[tuple[str, str]] = []
        self.discover_count = 0

    def discover(self) -> list[ProcessEntry]:
        self.discover_count += 1
        if self.discover_error is not None:
            raise DiscoveryError(self.discover_error)
        return list(self.snapshot)

    def terminate(self, pid: str) -> None:
        self.calls.append(("terminate", pid))
        if self.terminate_error is not None:
            raise KillError(self.terminate_error)
        self._remove(pid)

    def force_terminate(self, pid: str) -> None:
        self.calls.append(("force_terminate", pid))
        if self.force_error is not None:
            raise KillError(self.force_error)
        self._remove(pid)

    def _remove(self, pid: str) -> None:
        self.snapshot = [p for p in self.snapshot if p.pid != pid]


@pytest.fixture
def sample_processes() -> list[ProcessEntry]:
    """A small snapshot in discovery order."""
    return [
        make_entry("node", "1234", "alice", "*:3000 (LISTEN)", 120.5, datetime(2024, 1, 1, 10, 0)),
        make_entry("nginx", "80", "root", "*:80 (LISTEN)", 15.0, datetime(2024, 1, 1, 8, 0)),
        make_entry("postgres", "5432", "postgres", "127.0.0.1:5432 (LISTEN)", 64.0, None),
        make_entry("redis-ser", "6379", "redis", "127.0.0.1:6379 (LISTEN)", 8.25, datetime(2024, 1, 2, 9, 0)),
    ]


@pytest.fixture
def fake_inspector(sample_processes) -> FakeInspector:
    """FakeInspector preloaded with the sample snapshot."""
    return FakeInspector(sample_processes)
