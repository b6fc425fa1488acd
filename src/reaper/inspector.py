"""Process inspection for reaper: listening socket discovery, enrichment, signals."""

import logging
import re
import subprocess
from dataclasses import replace
from datetime import datetime
from typing import NamedTuple

import psutil

from reaper.models import ProcessEntry, Protocol

logger = logging.getLogger(__name__)

LSOF_COMMAND = ["lsof", "-i", "-P", "-n", "-sTCP:LISTEN"]
SOCKET_STATE_COMMAND = ["ss", "-tulpn"]
MIN_LSOF_FIELDS = 9


class ReaperError(Exception):
    """Base class for reaper errors."""


class DiscoveryError(ReaperError):
    """The listening socket enumeration failed outright."""


class KillError(ReaperError):
    """A termination signal could not be delivered."""


class Enrichment(NamedTuple):
    """Best-effort metadata for one pid."""

    protocol: Protocol
    memory_mb: float
    start_time: datetime | None


def parse_lsof_output(output: str) -> list[ProcessEntry]:
    """
    Parse ``lsof`` output into process entries.

    The first line is the column header and is skipped. Lines with fewer than
    nine whitespace-separated fields are dropped. Everything from the ninth
    field onward is rejoined into the socket name.
    """
    entries: list[ProcessEntry] = []
    for line in output.splitlines()[1:]:
        fields = line.split()
        if len(fields) < MIN_LSOF_FIELDS:
            continue
        entries.append(
            ProcessEntry(
                command=fields[0],
                pid=fields[1],
                user=fields[2],
                fd=fields[3],
                socket_type=fields[4],
                device=fields[5],
                size_off=fields[6],
                node=fields[7],
                name=" ".join(fields[8:]),
            )
        )
    return entries


class ProcessInspector:
    """
    Runs system utilities to find listening processes and signal them.

    Every call blocks until the external command finishes or times out.
    Nothing is retried here; escalation policy belongs to the caller.
    """

    def __init__(self, command_timeout: float = 5.0) -> None:
        """
        Initialize the ProcessInspector.

        Args:
            command_timeout: Seconds to wait for any external command.
        """
        self._timeout = command_timeout

    @property
    def command_timeout(self) -> float:
        """Get the external command timeout."""
        return self._timeout

    def _run(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=self._timeout,
            check=False,
        )

    def discover(self) -> list[ProcessEntry]:
        """
        Enumerate processes with listening TCP sockets.

        Raises:
            DiscoveryError: lsof could not run or exited non-zero.
        """
        try:
            result = self._run(LSOF_COMMAND)
        except (OSError, subprocess.SubprocessError) as e:
            raise DiscoveryError(f"lsof could not be run: {e}") from e

        if result.returncode != 0:
            raise DiscoveryError(f"lsof command failed: {result.stderr.strip()}")

        entries = parse_lsof_output(result.stdout)
        if not entries:
            return entries

        socket_table = self._socket_table()
        enrichments: dict[str, Enrichment] = {}
        enriched: list[ProcessEntry] = []
        for entry in entries:
            if entry.pid not in enrichments:
                enrichments[entry.pid] = self.enrich(entry.pid, socket_table)
            info = enrichments[entry.pid]
            enriched.append(
                replace(
                    entry,
                    protocol=info.protocol,
                    memory_mb=info.memory_mb,
                    start_time=info.start_time,
                )
            )
        return enriched

    def enrich(self, pid: str, socket_table: str | None = None) -> Enrichment:
        """
        Look up protocol, resident memory and start time for a pid.

        Each lookup falls back to its default on failure without affecting
        the others.

        Args:
            pid: Process id as text.
            socket_table: Output of ``ss`` to reuse; fetched when omitted.
        """
        if socket_table is None:
            socket_table = self._socket_table()
        return Enrichment(
            protocol=self._lookup_protocol(pid, socket_table),
            memory_mb=self._lookup_memory_mb(pid),
            start_time=self._lookup_start_time(pid),
        )

    def _socket_table(self) -> str:
        try:
            result = self._run(SOCKET_STATE_COMMAND)
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("ss could not be run: %s", e)
            return ""
        if result.returncode != 0:
            logger.debug("ss failed: %s", result.stderr.strip())
            return ""
        return result.stdout

    @staticmethod
    def _lookup_protocol(pid: str, socket_table: str) -> Protocol:
        pattern = re.compile(rf"\bpid={re.escape(pid)}\b")
        for line in socket_table.splitlines():
            if pattern.search(line):
                if line.lstrip().lower().startswith("udp"):
                    return Protocol.UDP
                return Protocol.TCP
        return Protocol.TCP

    @staticmethod
    def _lookup_memory_mb(pid: str) -> float:
        try:
            rss = psutil.Process(int(pid)).memory_info().rss
        except (ValueError, OverflowError, psutil.Error) as e:
            logger.debug("memory lookup failed for pid %s: %s", pid, e)
            return 0.0
        return rss / (1024 * 1024)

    @staticmethod
    def _lookup_start_time(pid: str) -> datetime | None:
        try:
            created = psutil.Process(int(pid)).create_time()
        except (ValueError, OverflowError, psutil.Error) as e:
            logger.debug("start time lookup failed for pid %s: %s", pid, e)
            return None
        return datetime.fromtimestamp(created)

    def terminate(self, pid: str) -> None:
        """
        Send SIGTERM to a pid.

        Raises:
            KillError: the signal could not be delivered.
        """
        self._signal(pid, "TERM")

    def force_terminate(self, pid: str) -> None:
        """
        Send SIGKILL to a pid.

        Raises:
            KillError: the signal could not be delivered.
        """
        self._signal(pid, "KILL")

    def _signal(self, pid: str, signal_name: str) -> None:
        try:
            result = self._run(["kill", f"-{signal_name}", pid])
        except (OSError, subprocess.SubprocessError) as e:
            raise KillError(f"kill -{signal_name} {pid} could not be run: {e}") from e
        if result.returncode != 0:
            reason = result.stderr.strip() or f"exit status {result.returncode}"
            raise KillError(reason)
