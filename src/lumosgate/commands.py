"""Shell command dispatcher.

Runs a command string through the shell of the requested OS family.  The
command runs in a fresh staging directory under the same admission
control and deadline as code execution.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .errors import ErrorKind
from .executor.admission import AdmissionController
from .executor.base import ExecutionResult, ResourceLimits, invalid_text, run_process
from .executor.dispatcher import Dispatcher
from .executor.staging import StagingArea


logger = logging.getLogger(__name__)

DEFAULT_OS_TYPE = "linux"

SHELLS: Dict[str, List[str]] = {
    "linux": ["sh", "-c"],
    "ubuntu": ["sh", "-c"],
    "debian": ["sh", "-c"],
    "kali": ["sh", "-c"],
    "centos": ["sh", "-c"],
    "macos": ["sh", "-c"],
    "windows": ["cmd", "/C"],
    "powershell": ["powershell", "-Command"],
}


class CommandDispatcher(Dispatcher):
    """Run a command line through the shell of an OS family.

    Parameters
    ----------
    staging: StagingArea
        Root of the per-request working directories.
    admission: AdmissionController
        Shared limit on concurrently running jobs.
    limits: ResourceLimits
        Deadline and rlimits for each command.
    """

    def __init__(self, staging: StagingArea, admission: AdmissionController, limits: ResourceLimits) -> None:
        super().__init__(staging, admission)
        self.limits = limits

    @property
    def os_types(self) -> List[str]:
        return sorted(SHELLS)

    def run_command(self, command: str, os_type: Optional[str] = None) -> ExecutionResult:
        key = (os_type or DEFAULT_OS_TYPE).strip().lower()
        shell = SHELLS.get(key)
        if shell is None:
            logger.warning("Unsupported OS type: %s", os_type)
            return ExecutionResult.failure(
                f"Unsupported OS type: {os_type}", ErrorKind.UNSUPPORTED_OS_TYPE
            )
        problem = invalid_text(command)
        if problem is not None:
            return ExecutionResult.failure(f"Invalid command: {problem}", ErrorKind.INVALID_INPUT)
        logger.info("Running %s command (%d chars)", key, len(command))
        return self._dispatch(
            lambda staging_dir: run_process(
                [*shell, command], staging_dir, self.limits, "Command execution failed"
            )
        )
