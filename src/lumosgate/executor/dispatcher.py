"""
Language dispatcher.

:class:`Dispatcher` holds the stage → spawn → wait → normalize sequence
common to every dispatcher in the package: it admits the job, allocates a
staging directory, runs the work and turns infrastructure failures into
results.  :class:`ExecutionDispatcher` maps language identifiers onto
:class:`~lumosgate.executor.base.CodeExecutor` recipes.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from ..errors import ErrorKind
from .admission import AdmissionController, AdmissionRejected
from .base import CodeExecutor, ExecutionResult, ResourceLimits, invalid_text
from .compiled import CompiledExecutor
from .interpreted import InlineExecutor, StagedScriptExecutor
from .staging import StagingArea


logger = logging.getLogger(__name__)


def default_executors(limits: ResourceLimits) -> Dict[str, CodeExecutor]:
    """Recipes for every language the gateway knows how to run."""
    python = InlineExecutor("python3", "-c", limits)
    node = InlineExecutor("node", "-e", limits, memory_limited=False)
    shell = InlineExecutor("sh", "-c", limits)
    return {
        "python": python,
        "ruby": InlineExecutor("ruby", "-e", limits),
        "php": InlineExecutor("php", "-r", limits),
        "node": node,
        "javascript": node,
        "bash": shell,
        "sh": shell,
        "go": StagedScriptExecutor(["go", "run"], "main.go", limits, memory_limited=False),
        "rust": CompiledExecutor(["rustc", "{source}", "-o", "{binary}"], "main.rs", "main", limits),
    }


class Dispatcher:
    """Shared admission and staging for one-shot process jobs."""

    def __init__(self, staging: StagingArea, admission: AdmissionController) -> None:
        self.staging = staging
        self.admission = admission

    def _dispatch(self, work: Callable[[Path], ExecutionResult]) -> ExecutionResult:
        try:
            with self.admission.slot():
                with self.staging.request_dir() as staging_dir:
                    return work(staging_dir)
        except AdmissionRejected as exc:
            return ExecutionResult.failure(str(exc), ErrorKind.REJECTED)
        except OSError as exc:
            # Spawn errors are handled by run_process; anything reaching here
            # is the staging filesystem itself.
            logger.exception("Staging failure: %s", exc)
            return ExecutionResult.failure(f"Staging failure: {exc}", ErrorKind.STAGING_FAILURE)


class ExecutionDispatcher(Dispatcher):
    """Run source code in one of the registered languages.

    Parameters
    ----------
    executors: dict
        Language identifier → executor.
    allowed_langs: iterable of str, optional
        Restrict the registry to these identifiers.  Empty or ``None``
        keeps every registered language.
    """

    def __init__(
        self,
        executors: Dict[str, CodeExecutor],
        staging: StagingArea,
        admission: AdmissionController,
        allowed_langs: Optional[Iterable[str]] = None,
    ) -> None:
        super().__init__(staging, admission)
        allowed = {lang.lower() for lang in (allowed_langs or [])}
        self.executors = {
            name.lower(): executor
            for name, executor in executors.items()
            if not allowed or name.lower() in allowed
        }

    @property
    def languages(self) -> List[str]:
        return sorted(self.executors)

    def execute(self, language: str, source: str) -> ExecutionResult:
        key = (language or "").strip().lower()
        executor = self.executors.get(key)
        if executor is None:
            logger.warning("Unsupported language: %s", language)
            return ExecutionResult.failure(
                f"Unsupported language: {language}", ErrorKind.UNSUPPORTED_LANGUAGE
            )
        problem = invalid_text(source)
        if problem is not None:
            logger.warning("Rejected %s snippet: source %s", key, problem)
            return ExecutionResult.failure(f"Invalid source: {problem}", ErrorKind.INVALID_INPUT)
        logger.info("Executing %s snippet (%d chars)", key, len(source))
        result = self._dispatch(lambda staging_dir: executor.execute(staging_dir, source))
        logger.info(
            "Execution finished: language=%s succeeded=%s exit_code=%s duration_ms=%s",
            key,
            result.succeeded,
            result.exit_code,
            result.duration_ms,
        )
        return result
