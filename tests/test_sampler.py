"""Tests for the ProcessSampler."""

import os
import threading
from types import SimpleNamespace

import psutil
import pytest

from epmon import sampler as sampler_mod
from epmon.models import PID_LOOKUP_FAILED, PID_NOT_FOUND, RawProcSnapshot
from epmon.sampler import ProcessSampler, calc_cpu_percent, executable_name, matches


def fake_proc(pid: int, name: str, cmdline: list[str] | None = None) -> SimpleNamespace:
    """Build an object shaped like a psutil.Process yielded by process_iter(attrs=...)."""
    return SimpleNamespace(pid=pid, info={"pid": pid, "name": name, "cmdline": cmdline})


def snapshot(user=0.0, cuser=0.0, system=0.0, csystem=0.0, total=0.0, vms=0, rss=0):
    """Build a RawProcSnapshot with defaults."""
    return RawProcSnapshot(
        user=user,
        system=system,
        children_user=cuser,
        children_system=csystem,
        vms=vms,
        rss=rss,
        total_cpu=total,
    )


@pytest.fixture
def process_table(monkeypatch):
    """Replace psutil.process_iter with a fixed list of fake processes."""

    def install(*procs):
        monkeypatch.setattr(sampler_mod.psutil, "process_iter", lambda attrs=None: iter(procs))

    return install


class TestCpuFormula:
    """Tests for calc_cpu_percent."""

    def test_user_cpu_percent(self):
        """Test 50 user ticks over 500 total ticks is 10%."""
        before = snapshot(user=100, cuser=0, total=10000)
        after = snapshot(user=150, cuser=0, total=10500)

        user_pct, _ = calc_cpu_percent(before, after)

        assert user_pct == pytest.approx(10.0)

    def test_children_ticks_are_included(self):
        """Test child user time counts towards user CPU."""
        before = snapshot(user=100, cuser=10, total=1000)
        after = snapshot(user=120, cuser=30, total=1400)

        user_pct, _ = calc_cpu_percent(before, after)

        assert user_pct == pytest.approx(10.0)

    def test_system_cpu_percent(self):
        """Test system and child system time form the system percentage."""
        before = snapshot(system=5, csystem=5, total=100)
        after = snapshot(system=10, csystem=10, total=200)

        user_pct, system_pct = calc_cpu_percent(before, after)

        assert user_pct == 0.0
        assert system_pct == pytest.approx(10.0)

    def test_zero_total_delta(self):
        """Test equal totals yield 0.0 instead of dividing by zero."""
        before = snapshot(user=100, total=10000)
        after = snapshot(user=150, total=10000)

        assert calc_cpu_percent(before, after) == (0.0, 0.0)

    def test_zero_total_delta_warns(self, caplog):
        """Test the zero-delta guard logs a warning."""
        before = snapshot(total=5)

        with caplog.at_level("WARNING", logger="epmon.sampler"):
            calc_cpu_percent(before, before)

        assert "Zero CPU time delta" in caplog.text


class TestMatching:
    """Tests for executable-name matching."""

    def test_executable_name_from_cmdline(self):
        """Test the first cmdline argument is the executable name."""
        info = {"name": "firefox", "cmdline": ["/usr/lib/firefox/firefox", "-P", "default"]}

        assert executable_name(info) == "/usr/lib/firefox/firefox"

    def test_executable_name_strips_rewritten_cmdline(self):
        """Test a space-joined cmdline keeps only its first token."""
        info = {"name": "postgres", "cmdline": ["postgres: writer process   "]}

        assert executable_name(info) == "postgres:"

    def test_executable_name_falls_back_to_name(self):
        """Test processes without a cmdline use their name."""
        assert executable_name({"name": "kworker/0:1", "cmdline": []}) == "kworker/0:1"
        assert executable_name({"name": "kthreadd", "cmdline": None}) == "kthreadd"

    def test_substring_case_insensitive(self):
        """Test matching is substring and ignores case."""
        assert matches("firefox", "fire")
        assert matches("firefox", "FIRE")
        assert matches("/usr/lib/firefox/firefox", "Firefox")
        assert not matches("firefox", "chrome")

    def test_empty_name_matches_everything(self):
        """Test an empty watched name matches any executable."""
        assert matches("/sbin/init", "")
        assert matches("", "")

    def test_empty_name_resolves_to_first_process(self, process_table):
        """Test an empty watched name resolves to the first process enumerated."""
        process_table(
            fake_proc(1, "systemd", ["/sbin/init"]),
            fake_proc(42, "firefox", ["/usr/lib/firefox/firefox"]),
        )

        assert ProcessSampler(delay=0).resolve("") == 1


class TestResolve:
    """Tests for ProcessSampler.resolve."""

    def test_substring_match(self, process_table):
        """Test 'fire' resolves to a running firefox."""
        process_table(
            fake_proc(10, "bash", ["/bin/bash"]),
            fake_proc(42, "firefox", ["/usr/lib/firefox/firefox"]),
        )

        assert ProcessSampler(delay=0).resolve("fire") == 42

    def test_match_ignores_case(self, process_table):
        """Test 'FIRE' resolves to a running firefox."""
        process_table(fake_proc(42, "firefox", ["/usr/lib/firefox/firefox"]))

        assert ProcessSampler(delay=0).resolve("FIRE") == 42

    def test_first_match_wins(self, process_table):
        """Test the first process in enumeration order is returned."""
        process_table(
            fake_proc(300, "bash", ["bash"]),
            fake_proc(100, "bash", ["/bin/bash"]),
        )

        assert ProcessSampler(delay=0).resolve("bash") == 300

    def test_no_match(self, process_table):
        """Test a missing process resolves to the not-found sentinel."""
        process_table(fake_proc(10, "bash", ["/bin/bash"]))

        assert ProcessSampler(delay=0).resolve("ghost") == PID_NOT_FOUND

    def test_unreadable_process_table(self, monkeypatch):
        """Test an unreadable process table resolves to the lookup-failure sentinel."""

        def broken(attrs=None):
            raise FileNotFoundError("/proc")

        monkeypatch.setattr(sampler_mod.psutil, "process_iter", broken)

        assert ProcessSampler(delay=0).resolve("bash") == PID_LOOKUP_FAILED


class TestSample:
    """Tests for ProcessSampler.sample and measure."""

    def test_not_found_sample(self, process_table):
        """Test sampling a missing process gives a zero-valued sample and never raises."""
        process_table(fake_proc(10, "bash", ["/bin/bash"]))

        sample = ProcessSampler(delay=0).sample("ghost")

        assert sample.app == "ghost"
        assert sample.pid == PID_NOT_FOUND
        assert sample.cpu_percent == 0.0
        assert sample.memory == 0.0
        assert not sample.found

    def test_lookup_failure_sample(self, monkeypatch):
        """Test an unreadable process table is reported with its own sentinel."""

        def broken(attrs=None):
            raise PermissionError("/proc")

        monkeypatch.setattr(sampler_mod.psutil, "process_iter", broken)

        sample = ProcessSampler(delay=0).sample("bash")

        assert sample.pid == PID_LOOKUP_FAILED
        assert not sample.found

    def test_measure_uses_second_snapshot_vms(self, monkeypatch):
        """Test CPU comes from the formula and memory from the second snapshot's VMS."""
        snaps = iter([
            snapshot(user=100, total=10000, vms=1000, rss=10),
            snapshot(user=150, total=10500, vms=2000, rss=20),
        ])
        sampler = ProcessSampler(delay=0)
        monkeypatch.setattr(sampler, "capture", lambda pid: next(snaps))

        sample = sampler.measure("realproc", 77)

        assert sample.pid == 77
        assert sample.cpu_percent == pytest.approx(10.0)
        assert sample.memory == 2000.0

    def test_process_exits_between_snapshots(self, monkeypatch):
        """Test a process that exits mid-sample is reported as not found."""
        calls = []

        def capture(pid):
            calls.append(pid)
            if len(calls) == 2:
                raise psutil.NoSuchProcess(pid)
            return snapshot(total=1)

        sampler = ProcessSampler(delay=0)
        monkeypatch.setattr(sampler, "capture", capture)

        sample = sampler.measure("realproc", 77)

        assert sample.pid == PID_NOT_FOUND
        assert sample.cpu_percent == 0.0
        assert len(calls) == 2

    def test_access_denied(self, monkeypatch):
        """Test unreadable counters degrade to a not-found sample."""

        def capture(pid):
            raise psutil.AccessDenied(pid)

        sampler = ProcessSampler(delay=0)
        monkeypatch.setattr(sampler, "capture", capture)

        assert not sampler.measure("realproc", 77).found

    def test_stop_event_interrupts_delay(self, monkeypatch):
        """Test a set stop event cuts the delay short and drops the sample."""
        stop = threading.Event()
        stop.set()
        sampler = ProcessSampler(delay=30.0, stop_event=stop)
        monkeypatch.setattr(sampler, "capture", lambda pid: snapshot(total=1))

        sample = sampler.measure("realproc", 77)

        assert not sample.found


class TestLiveProcess:
    """Tests against the real process table."""

    def test_capture_current_process(self):
        """Test counters of the test process are readable and sane."""
        snap = ProcessSampler(delay=0).capture(os.getpid())

        assert snap.user >= 0.0
        assert snap.system >= 0.0
        assert snap.vms > 0
        assert snap.rss > 0
        assert snap.total_cpu > 0.0

    def test_sample_current_process(self):
        """Test sampling the test process by its executable name."""
        exe = os.path.basename(psutil.Process().cmdline()[0])

        sample = ProcessSampler(delay=0.1).sample(exe)

        assert sample.found
        assert sample.pid >= 1
        assert sample.cpu_percent >= 0.0
        assert sample.memory > 0.0

    def test_capture_missing_pid_raises(self):
        """Test capturing a PID that does not exist raises NoSuchProcess."""
        with pytest.raises(psutil.NoSuchProcess):
            ProcessSampler(delay=0).capture(2**22 + 12345)
