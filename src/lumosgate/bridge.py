"""
Bridge to the external Lumos transpiler.

The transpiler itself is an opaque process reached through a fixed
argument contract::

    <binary> <script> <program>                     # run
    <binary> <script> compile <program> <target>    # compile

Source is staged to ``program.lumos`` inside the request's own staging
directory, so concurrent requests never read each other's programs.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ErrorKind
from .executor.admission import AdmissionController
from .executor.base import ExecutionResult, ResourceLimits, invalid_text, run_process
from .executor.dispatcher import Dispatcher
from .executor.staging import StagingArea


logger = logging.getLogger(__name__)

PROGRAM_NAME = "program.lumos"

_TARGET = re.compile(r"[A-Za-z][A-Za-z0-9_]{0,31}")


@dataclass
class BridgeResult:
    """Outcome of one bridge call.

    ``output`` is set for runs and ``compiled`` for compilations; both are
    ``None`` when the bridge never started.
    """

    succeeded: bool
    output: Optional[str] = None
    compiled: Optional[str] = None
    target: Optional[str] = None
    exit_code: Optional[int] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


def _combined(result: ExecutionResult) -> str:
    if not result.stderr:
        return result.stdout
    return f"{result.stdout}\n{result.stderr}"


class TranspilerBridge(Dispatcher):
    """Run or compile Lumos programs through the external engine.

    Parameters
    ----------
    staging: StagingArea
        Root of the per-request working directories.
    admission: AdmissionController
        Shared limit on concurrently running jobs.
    limits: ResourceLimits
        Deadline and CPU limit; the memory cap is always dropped.
    binary, script: str
        Interpreter and entry script of the engine.
    default_target: str
        Compilation target used when a request names none.
    """

    def __init__(
        self,
        staging: StagingArea,
        admission: AdmissionController,
        limits: ResourceLimits,
        binary: str = "node",
        script: str = "/app/backend/lumos-engine/index.cjs",
        default_target: str = "python",
    ) -> None:
        super().__init__(staging, admission)
        # V8 reserves more address space than any sensible cap allows
        self.limits = limits.without_memory_cap()
        self.binary = binary
        self.script = script
        self.default_target = default_target

    def _invoke(self, source: str, *mode_args: str, failure: str) -> ExecutionResult:
        problem = invalid_text(source)
        if problem is not None:
            return ExecutionResult.failure(f"Invalid source: {problem}", ErrorKind.INVALID_INPUT)

        def work(staging_dir: Path) -> ExecutionResult:
            program = staging_dir / PROGRAM_NAME
            program.write_text(source, encoding="utf-8")
            argv = [self.binary, self.script]
            if mode_args:
                argv.extend([mode_args[0], str(program), *mode_args[1:]])
            else:
                argv.append(str(program))
            return run_process(argv, staging_dir, self.limits, failure)

        result = self._dispatch(work)
        if result.error_kind == ErrorKind.NON_ZERO_EXIT:
            result.error_kind = ErrorKind.BRIDGE_FAILURE
        return result

    def run_external(self, source: str) -> BridgeResult:
        logger.info("Running Lumos program (%d chars)", len(source))
        result = self._invoke(source, failure="Execution failed")
        return BridgeResult(
            succeeded=result.succeeded,
            output=_combined(result) if result.exit_code is not None else None,
            exit_code=result.exit_code,
            error=result.error,
            error_kind=result.error_kind,
        )

    def compile_external(self, source: str, target: Optional[str] = None) -> BridgeResult:
        target = (target or self.default_target).strip()
        if not _TARGET.fullmatch(target):
            return BridgeResult(
                succeeded=False,
                target=target,
                error=f"Invalid compilation target: {target!r}",
                error_kind=ErrorKind.INVALID_TARGET,
            )
        logger.info("Compiling Lumos program to %s (%d chars)", target, len(source))
        result = self._invoke(source, "compile", target, failure="Compilation failed")
        return BridgeResult(
            succeeded=result.succeeded,
            compiled=_combined(result) if result.exit_code is not None else None,
            target=target,
            exit_code=result.exit_code,
            error=result.error,
            error_kind=result.error_kind,
        )
