"""
Executor for compile-then-run languages.

The source is written into the request's staging directory, the compiler
builds a binary next to it, and the binary is run from there.  If the
compiler fails the binary is never invoked: the result carries the
compiler's own output and exit status with ``stage == "compile"``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

from ..errors import ErrorKind
from .base import CodeExecutor, ExecutionResult, ResourceLimits


logger = logging.getLogger(__name__)


class CompiledExecutor(CodeExecutor):
    """Compile ``source_name`` into ``binary_name`` and run it.

    Parameters
    ----------
    compiler: sequence of str
        Compiler command; ``{source}`` and ``{binary}`` placeholders in the
        arguments are replaced with the staged file names.
    source_name: str
        File name the source is written to.
    binary_name: str
        File name of the produced executable.
    """

    def __init__(
        self,
        compiler: Sequence[str],
        source_name: str,
        binary_name: str = "main",
        limits: Optional[ResourceLimits] = None,
    ) -> None:
        super().__init__(limits)
        self.compiler = list(compiler)
        self.source_name = source_name
        self.binary_name = binary_name

    @property
    def binaries(self) -> Sequence[str]:
        return (self.compiler[0],)

    def execute(self, staging_dir: Path, code: str) -> ExecutionResult:
        source_path = staging_dir / self.source_name
        source_path.write_text(code, encoding="utf-8")
        binary_path = staging_dir / self.binary_name
        args = [
            arg.format(source=source_path.name, binary=binary_path.name)
            for arg in self.compiler
        ]
        # Compilers map far more address space than the programs they build
        compiled = self._run_subprocess(args, staging_dir, memory_limited=False)
        if not compiled.succeeded:
            if compiled.error_kind == ErrorKind.NON_ZERO_EXIT:
                compiled.error = "Compilation failed"
                compiled.error_kind = ErrorKind.COMPILE_FAILURE
            compiled.stage = "compile"
            logger.info("Compilation failed in %s (exit=%s)", staging_dir.name, compiled.exit_code)
            return compiled
        if not binary_path.exists():
            return ExecutionResult(
                succeeded=False,
                stdout=compiled.stdout,
                stderr=compiled.stderr,
                exit_code=compiled.exit_code,
                error="Compilation produced no binary",
                error_kind=ErrorKind.COMPILE_FAILURE,
                duration_ms=compiled.duration_ms,
                stage="compile",
            )
        result = self._run_subprocess([str(binary_path)], staging_dir)
        result.duration_ms += compiled.duration_ms
        return result
