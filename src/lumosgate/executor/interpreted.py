"""
Executors for interpreted languages.

:class:`InlineExecutor` hands the source to the interpreter as an inline
program argument (``python3 -c``, ``ruby -e`` …); nothing is written to
disk.  :class:`StagedScriptExecutor` is for toolchains that only accept a
file (``go run``): the source is written into the request's staging
directory first.

These executors assume the interpreters are installed on the host and
found on ``PATH``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from .base import CodeExecutor, ExecutionResult, ResourceLimits


class InlineExecutor(CodeExecutor):
    """Run ``<binary> <flag> <code>``."""

    def __init__(
        self,
        binary: str,
        flag: str,
        limits: Optional[ResourceLimits] = None,
        memory_limited: bool = True,
    ) -> None:
        super().__init__(limits)
        self.binary = binary
        self.flag = flag
        self.memory_limited = memory_limited

    @property
    def binaries(self) -> Sequence[str]:
        return (self.binary,)

    def execute(self, staging_dir: Path, code: str) -> ExecutionResult:
        return self._run_subprocess([self.binary, self.flag, code], staging_dir)


class StagedScriptExecutor(CodeExecutor):
    """Write the source to ``filename`` and run ``<command…> <filename>``."""

    def __init__(
        self,
        command: Sequence[str],
        filename: str,
        limits: Optional[ResourceLimits] = None,
        memory_limited: bool = True,
    ) -> None:
        super().__init__(limits)
        self.command = list(command)
        self.filename = filename
        self.memory_limited = memory_limited

    @property
    def binaries(self) -> Sequence[str]:
        return (self.command[0],)

    def execute(self, staging_dir: Path, code: str) -> ExecutionResult:
        script_path = staging_dir / self.filename
        script_path.write_text(code, encoding="utf-8")
        return self._run_subprocess([*self.command, script_path.name], staging_dir)
