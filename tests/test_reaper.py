"""Tests for killing a phase's processes inside its container."""

from __future__ import annotations

import subprocess

import pytest
from conftest import FakeLauncher, FakeProcess

from dockwork.reaper import ReapExecError, kill_container_processes, select_pids

PS_ARGV = ["docker", "exec", "abc", "ps", "-A", "-o", "pid,command", "e"]

PS_OUTPUT = """\
  PID COMMAND
    1 cat PATH=/usr/bin HOME=/root
   42 sh -c make COOKIE=x1 PATH=/usr/bin
   57 make test COOKIE=x1 PATH=/usr/bin
   60 sleep 10 COOKIE=other PATH=/usr/bin
   71 ps -A -o pid,command e PATH=/usr/bin
"""


class TestSelectPids:
    def test_scenario_single_match(self):
        assert select_pids("42 sh -c BUILD_ID=7 run.sh", {"BUILD_ID": "7"}) == ["42"]

    def test_matches_in_ps_order(self):
        assert select_pids(PS_OUTPUT, {"COOKIE": "x1"}) == ["42", "57"]

    def test_every_pair_must_match(self):
        assert select_pids(PS_OUTPUT, {"COOKIE": "x1", "HOME": "/root"}) == []
        assert select_pids(PS_OUTPUT, {"COOKIE": "x1", "PATH": "/usr/bin"}) == ["42", "57"]

    def test_raw_substring_matches_argv_too(self):
        out = "10 echo COOKIE=x1\n11 env COOKIE=x10 make\n"
        # "COOKIE=x1" is a substring of "COOKIE=x10", so both match
        assert select_pids(out, {"COOKIE": "x1"}) == ["10", "11"]

    def test_header_and_blank_lines_skipped(self):
        assert select_pids("  PID COMMAND\n\n   \n  5 init\n", {}) == ["5"]

    def test_line_without_command_skipped(self):
        assert select_pids("   99\n", {}) == []

    def test_no_match(self):
        assert select_pids(PS_OUTPUT, {"COOKIE": "nope"}) == []


class TestKillContainerProcesses:
    def test_scenario_kills_matching_pid(self):
        launcher = FakeLauncher(FakeProcess(stdout="42 sh -c BUILD_ID=7 run.sh\n"), FakeProcess())
        killed = kill_container_processes(launcher, "docker", "abc", {"BUILD_ID": "7"})
        assert killed == ["42"]
        assert launcher.argvs == [PS_ARGV, ["docker", "exec", "abc", "kill", "42"]]

    def test_one_kill_call_for_all_matches(self):
        launcher = FakeLauncher(FakeProcess(stdout=PS_OUTPUT), FakeProcess())
        kill_container_processes(launcher, "docker", "abc", {"COOKIE": "x1"})
        assert launcher.argvs[1] == ["docker", "exec", "abc", "kill", "42", "57"]

    def test_no_match_issues_no_kill(self):
        launcher = FakeLauncher(FakeProcess(stdout=PS_OUTPUT))
        assert kill_container_processes(launcher, "docker", "abc", {"COOKIE": "gone"}) == []
        assert launcher.argvs == [PS_ARGV]

    def test_requests_capture_output_quietly(self):
        launcher = FakeLauncher(FakeProcess(stdout=PS_OUTPUT), FakeProcess())
        kill_container_processes(launcher, "docker", "abc", {"COOKIE": "x1"}, env={"PATH": "/x"})
        for request in launcher.requests:
            assert request.stdout == subprocess.PIPE
            assert request.quiet is True
            assert request.env == {"PATH": "/x"}

    def test_ps_failure_is_fatal(self):
        launcher = FakeLauncher(FakeProcess(returncode=1, stderr="No such container: abc"))
        with pytest.raises(ReapExecError) as exc_info:
            kill_container_processes(launcher, "docker", "abc", {"COOKIE": "x1"})
        assert exc_info.value.returncode == 1
        assert "No such container" in str(exc_info.value)
        assert len(launcher.requests) == 1

    def test_kill_failure_is_fatal(self):
        launcher = FakeLauncher(
            FakeProcess(stdout=PS_OUTPUT), FakeProcess(returncode=1, stderr="kill: (42)")
        )
        with pytest.raises(ReapExecError, match="exec kill"):
            kill_container_processes(launcher, "docker", "abc", {"COOKIE": "x1"})

    def test_already_exited_process_is_a_noop(self):
        # First reap kills 42; by the second listing it is gone
        launcher = FakeLauncher(
            FakeProcess(stdout="42 make COOKIE=x1\n"),
            FakeProcess(),
            FakeProcess(stdout="  PID COMMAND\n"),
        )
        kill_container_processes(launcher, "docker", "abc", {"COOKIE": "x1"})
        assert kill_container_processes(launcher, "docker", "abc", {"COOKIE": "x1"}) == []
        assert len(launcher.requests) == 3
