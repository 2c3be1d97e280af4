"""Per-application CPU and memory sampling for epmon."""

import logging
import threading
import time
from collections.abc import Iterable

import psutil

from epmon.models import PID_LOOKUP_FAILED, PID_NOT_FOUND, ProcessSample, RawProcSnapshot

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_DELAY = 1.0


def executable_name(info: dict) -> str:
    """
    Get the executable name of a process from its ``process_iter`` info.

    The executable name is the first token of the first command-line
    argument, path included. Processes without a command line (kernel
    threads, zombies) fall back to the process name.
    """
    cmdline = info.get("cmdline") or []
    if cmdline and cmdline[0]:
        tokens = cmdline[0].split()
        if tokens:
            return tokens[0]
    return info.get("name") or ""


def matches(executable: str, wanted: str) -> bool:
    """
    Case-insensitive substring match of a watched name against an executable.

    An empty name is a substring of every executable, so it matches the first
    process enumerated.
    """
    return wanted.casefold() in executable.casefold()


def calc_cpu_percent(before: RawProcSnapshot, after: RawProcSnapshot) -> tuple[float, float]:
    """
    Calculate CPU usage between two snapshots of the same process.

    user% = 100 * ((user2 + cuser2) - (user1 + cuser1)) / (total2 - total1)
    sys%  = 100 * ((sys2 + csys2) - (sys1 + csys1)) / (total2 - total1)

    The denominator is the machine-wide CPU time delta summed over all
    cores, so a single saturated core on an N-core host reads 100/N.

    Returns:
        (user_percent, system_percent). Both are 0.0 when the total delta
        is zero.
    """
    total_delta = after.total_cpu - before.total_cpu
    if total_delta <= 0:
        logger.warning("Zero CPU time delta between snapshots, reporting 0.0% CPU")
        return 0.0, 0.0

    user_delta = (after.user + after.children_user) - (before.user + before.children_user)
    system_delta = (after.system + after.children_system) - (
        before.system + before.children_system
    )
    return 100.0 * user_delta / total_delta, 100.0 * system_delta / total_delta


class ProcessSampler:
    """
    Resolves application names to live processes and measures them.

    A measurement takes two counter snapshots separated by ``delay`` seconds.
    No state is kept between calls, so one sampler may be shared by several
    threads.
    """

    def __init__(
        self,
        delay: float = DEFAULT_SAMPLE_DELAY,
        stop_event: threading.Event | None = None,
    ) -> None:
        """
        Initialize the ProcessSampler.

        Args:
            delay: Seconds between the two counter snapshots. Default 1.0s.
            stop_event: Optional event that cuts the delay short. A sample
                interrupted this way is reported as not found.
        """
        self._delay = delay
        self._stop_event = stop_event

    @property
    def delay(self) -> float:
        """Get the sampling delay."""
        return self._delay

    def sample(self, name: str) -> ProcessSample:
        """Resolve ``name`` and measure the matching process. Never raises."""
        pid = self.resolve(name)
        if pid < 1:
            return ProcessSample.unresolved(name, pid)
        return self.measure(name, pid)

    def resolve(self, name: str) -> int:
        """
        Find the PID of the first running process whose executable contains ``name``.

        Returns:
            The PID, ``PID_NOT_FOUND`` if nothing matches, or
            ``PID_LOOKUP_FAILED`` if the process table cannot be read.
        """
        try:
            return self._find(name, psutil.process_iter(attrs=["pid", "name", "cmdline"]))
        except (OSError, psutil.Error) as exc:
            logger.error("Unable to enumerate processes while looking for %r: %s", name, exc)
            return PID_LOOKUP_FAILED

    @staticmethod
    def _find(name: str, processes: Iterable[psutil.Process]) -> int:
        for proc in processes:
            info = proc.info
            if matches(executable_name(info), name):
                return info.get("pid") or proc.pid
        return PID_NOT_FOUND

    def capture(self, pid: int) -> RawProcSnapshot:
        """
        Read the CPU and memory counters of ``pid``.

        Raises:
            psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess:
                if the process is gone or unreadable.
        """
        proc = psutil.Process(pid)
        with proc.oneshot():
            cpu = proc.cpu_times()
            mem = proc.memory_info()
        # Machine-wide counters go last so both reads belong to the same instant
        total_cpu = sum(psutil.cpu_times())
        return RawProcSnapshot(
            user=cpu.user,
            system=cpu.system,
            children_user=cpu.children_user,
            children_system=cpu.children_system,
            vms=mem.vms,
            rss=mem.rss,
            total_cpu=total_cpu,
        )

    def measure(self, name: str, pid: int) -> ProcessSample:
        """
        Measure an already-resolved process.

        Memory is the virtual memory size from the second snapshot, in bytes.
        Returns an unresolved sample if the process exits, denies access or the
        wait is interrupted.
        """
        try:
            before = self.capture(pid)
            if self._wait():
                logger.debug("Sampling of %s (pid %d) interrupted by shutdown", name, pid)
                return ProcessSample.unresolved(name)
            after = self.capture(pid)
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess, OSError) as exc:
            logger.warning("Unable to read counters for %s (pid %d): %s", name, pid, exc)
            return ProcessSample.unresolved(name)

        user_pct, system_pct = calc_cpu_percent(before, after)
        sample = ProcessSample(
            app=name,
            pid=pid,
            cpu_percent=user_pct,
            system_cpu_percent=system_pct,
            memory=float(after.vms),
        )
        logger.debug(
            "Sampled %s: pid=%d cpu=%.3f%% sys=%.3f%% vms=%d rss=%d",
            name,
            pid,
            user_pct,
            system_pct,
            after.vms,
            after.rss,
        )
        return sample

    def _wait(self) -> bool:
        """Sleep for the sampling delay. Returns True if shutdown was requested."""
        if self._stop_event is None:
            time.sleep(self._delay)
            return False
        return self._stop_event.wait(timeout=self._delay)
