"""Tests for external command execution."""

import sys

from backend.services.lifecycle.command import CommandResult, run_command


def test_successful_command():
    result = run_command([sys.executable, "-c", "print('ok')"], timeout=30)
    assert result.ok
    assert result.returncode == 0


def test_failing_command_keeps_stderr():
    result = run_command(
        [sys.executable, "-c", "import sys; sys.stderr.write('disk full'); sys.exit(3)"],
        timeout=30,
    )
    assert not result.ok
    assert result.returncode == 3
    assert "disk full" in result.describe()


def test_missing_program():
    result = run_command(["definitely-not-a-real-program-4821"])
    assert not result.ok
    assert result.error
    assert "could not be started" in result.describe()


def test_timeout():
    result = run_command([sys.executable, "-c", "import time; time.sleep(10)"], timeout=0.5)
    assert result.timed_out
    assert not result.ok
    assert result.describe().endswith("timed out")


def test_describe_without_stderr():
    assert CommandResult(args=("tar",), returncode=2).describe() == "tar exited with code 2"
