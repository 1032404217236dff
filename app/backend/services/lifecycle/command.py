"""Blocking external command execution.

`run_command` never raises for a failing or hanging process; callers get a
`CommandResult` and decide at the call site whether the failure is fatal.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence


logger = logging.getLogger(__name__)

_STDERR_TAIL_CHARS = 2000

_URI_PASSWORD = re.compile(r"(://[^:/@\s]*):[^@/\s]*@")
_PASSWORD_PARAM = re.compile(r"(password=)[^&\s]*", re.IGNORECASE)


def redact(arg: object) -> str:
    """Mask passwords embedded in a command argument."""

    text = _URI_PASSWORD.sub(r"\1:***@", str(arg))
    return _PASSWORD_PARAM.sub(r"\1***", text)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of an external command."""

    args: Sequence[str]
    returncode: Optional[int]
    stderr: str = ""
    timed_out: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.error is None and self.returncode == 0

    def describe(self) -> str:
        """Return a one-line description of a failure."""

        program = self.args[0] if self.args else "command"
        if self.timed_out:
            return f"{program} timed out"
        if self.error:
            return f"{program} could not be started: {self.error}"
        detail = self.stderr.strip()
        if detail:
            return f"{program} exited with code {self.returncode}: {detail}"
        return f"{program} exited with code {self.returncode}"


def run_command(
    args: Sequence[str],
    *,
    timeout: Optional[float] = None,
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> CommandResult:
    """Run a command to completion.

    Args:
        args: Program and arguments.
        timeout: Seconds before the process is killed.
        cwd: Working directory.
        env: Full environment for the child process.

    Returns:
        CommandResult: Exit status and the tail of stderr.
    """

    logger.debug("Running command: %s", " ".join(redact(a) for a in args))
    try:
        completed = subprocess.run(
            [str(a) for a in args],
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env is not None else None,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        logger.warning("Command timed out after %ss: %s", timeout, args[0] if args else "")
        return CommandResult(args=tuple(args), returncode=None, timed_out=True)
    except OSError as exc:
        return CommandResult(args=tuple(args), returncode=None, error=str(exc))

    stderr = (completed.stderr or "")[-_STDERR_TAIL_CHARS:]
    return CommandResult(args=tuple(args), returncode=completed.returncode, stderr=stderr)
