"""
Execution backends for the gateway.

This package exposes the language executors and the dispatcher that
selects one by language identifier.  Each executor is responsible for
staging the user code if its toolchain needs a file, invoking the
interpreter or compiler, and returning the captured output.  Additional
languages can be added by implementing the ``CodeExecutor`` interface
from ``base.py`` and registering it in ``default_executors``.
"""

from .admission import AdmissionController, AdmissionRejected
from .base import CodeExecutor, ExecutionResult, ResourceLimits, run_process
from .compiled import CompiledExecutor
from .dispatcher import Dispatcher, ExecutionDispatcher, default_executors
from .interpreted import InlineExecutor, StagedScriptExecutor
from .staging import StagingArea

__all__ = [
    "AdmissionController",
    "AdmissionRejected",
    "CodeExecutor",
    "CompiledExecutor",
    "Dispatcher",
    "ExecutionDispatcher",
    "ExecutionResult",
    "InlineExecutor",
    "ResourceLimits",
    "StagedScriptExecutor",
    "StagingArea",
    "default_executors",
    "run_process",
]
