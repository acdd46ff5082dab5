"""
Base interfaces and dataclasses for execution backends.

All concrete executors inherit from :class:`CodeExecutor` and implement
:meth:`CodeExecutor.execute`.  The module-level :func:`run_process` helper
is shared by every dispatcher in the package (languages, shell commands,
network tools and the transpiler bridge) so that spawning, deadlines,
resource limits and output decoding behave the same everywhere.

Resource limits applied here are those available to an unprivileged
process: a wall-clock deadline that kills the whole process group, and
POSIX rlimits for CPU time and address space.  Filesystem and network
isolation must come from the deployment (containers, namespaces, a
dedicated unprivileged user).
"""

from __future__ import annotations

import abc
import errno
import logging
import os
import shutil
import signal
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ..errors import ErrorKind


logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = -9

LAUNCHER = Path(__file__).resolve().with_name("launcher.py")


@dataclass
class ExecutionResult:
    """Result of running a child process.

    Attributes
    ----------
    succeeded: bool
        True iff the process ran and exited with status zero.
    stdout: str
        Standard output, decoded with invalid bytes replaced.
    stderr: str
        Standard error, decoded with invalid bytes replaced.
    exit_code: int, optional
        Exit status of the process.  ``None`` when no process ran.
    error: str, optional
        Human-readable description of the failure.
    error_kind: ErrorKind, optional
        Machine-readable failure class.
    duration_ms: int
        Wall-clock time of the process in milliseconds.
    timed_out: bool
        The process was killed after exceeding its deadline.
    stage: str
        ``"run"`` or, for compiled languages that failed to build,
        ``"compile"``.
    """

    succeeded: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: Optional[int] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    duration_ms: int = 0
    timed_out: bool = False
    stage: str = "run"

    @property
    def output(self) -> str:
        """Both streams joined for display."""
        return f"{self.stdout}\n{self.stderr}".strip()

    @classmethod
    def failure(cls, error: str, kind: ErrorKind) -> "ExecutionResult":
        """A result for a request that never reached a process."""
        return cls(succeeded=False, error=error, error_kind=kind)


@dataclass(frozen=True)
class ResourceLimits:
    """Per-process ceilings: a wall-clock deadline plus CPU and memory rlimits."""

    timeout: int = 30
    max_cpu_secs: int = 0
    max_memory_mb: int = 0

    def without_memory_cap(self) -> "ResourceLimits":
        return ResourceLimits(timeout=self.timeout, max_cpu_secs=self.max_cpu_secs)

    @property
    def has_rlimits(self) -> bool:
        return os.name == "posix" and (self.max_cpu_secs > 0 or self.max_memory_mb > 0)

    def wrap(self, args: Sequence[str]) -> List[str]:
        """Prefix ``args`` with the launcher that applies the rlimits.

        Arguments are returned unchanged when there is nothing to apply.
        """
        if not self.has_rlimits:
            return list(args)
        return [
            sys.executable,
            "-I",
            str(LAUNCHER),
            str(self.max_cpu_secs),
            str(self.max_memory_mb),
            "--",
            *args,
        ]


def invalid_text(text: str) -> Optional[str]:
    """Describe why ``text`` cannot be handed to a process, or ``None``.

    Arguments and staged files must be NUL-free UTF-8; JSON strings may
    still carry NUL characters or lone surrogates.
    """
    if "\x00" in text:
        return "contains a NUL character"
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return "is not valid UTF-8 text"
    return None


def _resolve(binary: str, cwd: Path) -> Optional[str]:
    if os.sep in binary:
        path = Path(cwd) / binary
        return str(path) if path.is_file() and os.access(path, os.X_OK) else None
    return shutil.which(binary)


def _kill_group(process: subprocess.Popen) -> None:
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        # Group already empty; fall back to the child itself.
        try:
            process.kill()
        except ProcessLookupError:
            pass


def run_process(
    args: Sequence[str],
    cwd: Path,
    limits: ResourceLimits,
    failure_message: str = "Execution failed",
) -> ExecutionResult:
    """
    Run ``args`` without a shell and capture its output.

    The child is started in its own session so the deadline can kill the
    whole process group, including grandchildren such as a compiled
    binary started by ``go run`` or a job a shell put in the background.
    When CPU or memory limits are set the command is started through
    :mod:`lumosgate.executor.launcher`, which applies them and then
    ``exec``s the command.

    Parameters
    ----------
    args: sequence of str
        Command and arguments to execute.
    cwd: Path
        Working directory for the child.
    limits: ResourceLimits
        Deadline and rlimits.
    failure_message: str, optional
        ``error`` text used when the process exits non-zero.

    Returns
    -------
    ExecutionResult
        Never raises for spawn or execution failures.
    """
    for arg in args:
        problem = invalid_text(arg)
        if problem is not None:
            return ExecutionResult.failure(f"Invalid input: argument {problem}", ErrorKind.INVALID_INPUT)

    if limits.has_rlimits and _resolve(args[0], cwd) is None:
        logger.warning("Failed to start %s: not found", args[0])
        return ExecutionResult.failure(
            f"Failed to start {args[0]}: {os.strerror(errno.ENOENT)}",
            ErrorKind.SPAWN_FAILURE,
        )

    start_time = time.perf_counter()
    try:
        process = subprocess.Popen(
            limits.wrap(args),
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            start_new_session=True,
        )
    except OSError as exc:
        logger.warning("Failed to start %s: %s", args[0], exc)
        return ExecutionResult.failure(
            f"Failed to start {args[0]}: {exc.strerror or exc}",
            ErrorKind.SPAWN_FAILURE,
        )
    except ValueError as exc:
        return ExecutionResult.failure(f"Invalid input: {exc}", ErrorKind.INVALID_INPUT)

    timed_out = False
    finished = threading.Event()

    def kill_proc() -> None:
        # The leader may be gone while group members still hold the pipes
        nonlocal timed_out
        if finished.is_set():
            return
        timed_out = True
        _kill_group(process)

    # Timer thread enforces the wall clock deadline
    timer = threading.Timer(limits.timeout, kill_proc)
    timer.start()
    try:
        stdout, stderr = process.communicate()
    finally:
        finished.set()
        duration = int((time.perf_counter() - start_time) * 1000)
        timer.cancel()
    # Nothing the command started may outlive it
    _kill_group(process)

    exit_code = process.returncode
    stdout = stdout or ""
    stderr = stderr or ""
    if timed_out:
        stderr = stderr + f"\nExecution timed out after {limits.timeout} seconds."
        logger.warning("%s timed out after %ss", args[0], limits.timeout)
        return ExecutionResult(
            succeeded=False,
            stdout=stdout,
            stderr=stderr,
            exit_code=TIMEOUT_EXIT_CODE,
            error=f"Execution timed out after {limits.timeout} seconds",
            error_kind=ErrorKind.TIMED_OUT,
            duration_ms=duration,
            timed_out=True,
        )
    if exit_code != 0:
        return ExecutionResult(
            succeeded=False,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            error=failure_message,
            error_kind=ErrorKind.NON_ZERO_EXIT,
            duration_ms=duration,
        )
    return ExecutionResult(
        succeeded=True,
        stdout=stdout,
        stderr=stderr,
        exit_code=exit_code,
        duration_ms=duration,
    )


class CodeExecutor(abc.ABC):
    """
    Abstract base class defining the interface for language executors.

    Executors run user-supplied code inside a per-request staging
    directory and return the captured output.  Subclasses override
    :meth:`execute`.
    """

    #: Whether the address-space rlimit may be applied to this recipe.
    #: Runtimes that reserve large virtual ranges up front (V8, Go) fail
    #: to start under a modest cap.
    memory_limited = True

    def __init__(self, limits: Optional[ResourceLimits] = None) -> None:
        self.limits = limits or ResourceLimits()

    @property
    def binaries(self) -> Sequence[str]:
        """Host binaries this executor needs."""
        return ()

    def _limits(self, memory_limited: Optional[bool] = None) -> ResourceLimits:
        if memory_limited is None:
            memory_limited = self.memory_limited
        return self.limits if memory_limited else self.limits.without_memory_cap()

    @abc.abstractmethod
    def execute(self, staging_dir: Path, code: str) -> ExecutionResult:
        """Run ``code`` with ``staging_dir`` as working directory.

        Parameters
        ----------
        staging_dir: Path
            Private, request-unique directory.  Executors that need a
            source file write it here.
        code: str
            The user supplied code to run.
        """
        raise NotImplementedError

    def _run_subprocess(
        self,
        args: Sequence[str],
        staging_dir: Path,
        memory_limited: Optional[bool] = None,
    ) -> ExecutionResult:
        return run_process(args, staging_dir, self._limits(memory_limited))
