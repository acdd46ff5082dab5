"""
Apply resource limits to the current process and exec a command.

:func:`lumosgate.executor.base.run_process` starts this file by path with
the running interpreter::

    python -I launcher.py <max_cpu_secs> <max_memory_mb> -- <command> [args...]

A limit of ``0`` leaves that resource untouched.  The file imports only the
standard library so it runs without the package on ``sys.path``.
"""

from __future__ import annotations

import os
import sys
from typing import List

try:
    import resource
except ImportError:  # pragma: no cover - non-POSIX hosts
    resource = None  # type: ignore

EXEC_FAILURE = 127
USAGE = "usage: launcher.py <max_cpu_secs> <max_memory_mb> -- <command> [args...]\n"


def _set_limit(kind: int, value: int) -> None:
    # An unprivileged process may lower its hard limit but never raise it
    _, hard = resource.getrlimit(kind)
    if hard != resource.RLIM_INFINITY:
        value = min(value, hard)
    resource.setrlimit(kind, (value, value))


def apply_limits(max_cpu_secs: int, max_memory_mb: int) -> None:
    if resource is None:
        return
    if max_cpu_secs > 0:
        _set_limit(resource.RLIMIT_CPU, max_cpu_secs)
    if max_memory_mb > 0:
        _set_limit(resource.RLIMIT_AS, max_memory_mb * 1024 * 1024)


def main(argv: List[str]) -> int:
    if len(argv) < 4 or argv[2] != "--":
        sys.stderr.write(USAGE)
        return 2
    try:
        max_cpu_secs, max_memory_mb = int(argv[0]), int(argv[1])
    except ValueError:
        sys.stderr.write(USAGE)
        return 2
    command = argv[3:]
    apply_limits(max_cpu_secs, max_memory_mb)
    try:
        os.execvp(command[0], command)
    except OSError as exc:
        sys.stderr.write(f"Failed to start {command[0]}: {exc.strerror or exc}\n")
    return EXEC_FAILURE


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
