"""Data models for epmon."""

import time
from dataclasses import dataclass, field
from typing import Any

# PID sentinels for unresolved samples
PID_NOT_FOUND = -1
PID_LOOKUP_FAILED = -2


@dataclass(slots=True, frozen=True)
class RawProcSnapshot:
    """Kernel counters for one process, captured at one instant.

    CPU times are in seconds. ``total_cpu`` is the machine-wide cumulative
    CPU time (all cores, all states) read at the same instant.
    """

    user: float
    system: float
    children_user: float
    children_system: float
    vms: int  # Bytes
    rss: int  # Bytes
    total_cpu: float


@dataclass(slots=True, frozen=True)
class ProcessSample:
    """Immutable measurement of one watched application."""

    app: str
    pid: int
    cpu_percent: float = 0.0
    system_cpu_percent: float = 0.0
    memory: float = 0.0  # Virtual memory size, bytes
    timestamp: float = field(default_factory=time.time)

    @property
    def found(self) -> bool:
        """Whether the sample belongs to a live process."""
        return self.pid >= 1

    @classmethod
    def unresolved(cls, app: str, pid: int = PID_NOT_FOUND) -> "ProcessSample":
        """Build a zero-valued sample carrying a sentinel PID."""
        return cls(app=app, pid=pid)

    def to_dict(self) -> dict[str, Any]:
        """Render the sample as one ``healthcheck`` entry."""
        return {
            "app": self.app,
            "timestamp": time.ctime(self.timestamp),
            "PID": self.pid,
            "CPU": float(self.cpu_percent),
            "Memory": float(self.memory),
        }


@dataclass(slots=True, frozen=True)
class Report:
    """A batch of samples produced within one monitor tick."""

    samples: tuple[ProcessSample, ...] = ()
    name: str = "healthcheck"

    def __len__(self) -> int:
        return len(self.samples)

    def to_payload(self) -> dict[str, list[dict[str, Any]]]:
        """Build the JSON body POSTed to the results collector."""
        return {self.name: [sample.to_dict() for sample in self.samples]}
