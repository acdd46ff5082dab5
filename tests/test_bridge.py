"""
Tests for the transpiler bridge.

A small Python script stands in for the Lumos engine (see ``conftest``),
so these tests exercise the argument contract without needing node.
"""

from __future__ import annotations

import sys
from concurrent.futures import ThreadPoolExecutor

import pytest

from lumosgate.bridge import PROGRAM_NAME, TranspilerBridge
from lumosgate.errors import ErrorKind
from lumosgate.executor import ResourceLimits


@pytest.fixture
def bridge(staging, admission, fake_bridge) -> TranspilerBridge:
    return TranspilerBridge(
        staging,
        admission,
        ResourceLimits(timeout=10, max_memory_mb=512),
        binary=sys.executable,
        script=str(fake_bridge),
    )


def test_run_passes_staged_program(bridge, spawns):
    result = bridge.run_external("print 1")
    assert result.succeeded is True
    assert result.output.strip() == "ran: print 1"
    assert result.compiled is None
    argv = spawns[0]
    assert argv[:2] == [bridge.binary, bridge.script]
    assert argv[2].endswith(PROGRAM_NAME)
    assert len(argv) == 3


def test_compile_passes_mode_and_target(bridge, spawns):
    result = bridge.compile_external("let x = 1", "rust")
    assert result.succeeded is True
    assert result.compiled.strip() == "compiled[rust]: let x = 1"
    assert result.output is None
    assert result.target == "rust"
    argv = spawns[0]
    assert argv[2] == "compile"
    assert argv[3].endswith(PROGRAM_NAME)
    assert argv[4] == "rust"


def test_compile_uses_default_target(bridge):
    result = bridge.compile_external("x")
    assert result.target == "python"
    assert "compiled[python]" in result.compiled


def test_stderr_is_appended(bridge):
    result = bridge.run_external("warn me")
    assert result.output == "ran: warn me\n\nwarning: warn me"


def test_failure_is_bridge_failure(bridge):
    result = bridge.run_external("fail here")
    assert result.succeeded is False
    assert result.exit_code == 1
    assert result.error == "Execution failed"
    assert result.error_kind == ErrorKind.BRIDGE_FAILURE
    assert "ran: fail here" in result.output


def test_compile_failure_message(bridge):
    result = bridge.compile_external("fail", "go")
    assert result.error == "Compilation failed"
    assert result.error_kind == ErrorKind.BRIDGE_FAILURE


@pytest.mark.parametrize("target", ["--eval", "py thon", "../etc", "x;y"])
def test_invalid_target_spawns_nothing(bridge, spawns, target):
    result = bridge.compile_external("x", target)
    assert result.error_kind == ErrorKind.INVALID_TARGET
    assert spawns == []


def test_missing_bridge_binary(staging, admission, fake_bridge):
    bridge = TranspilerBridge(
        staging, admission, ResourceLimits(), binary="definitely-not-node-xyz", script=str(fake_bridge)
    )
    result = bridge.run_external("x")
    assert result.succeeded is False
    assert result.error_kind == ErrorKind.SPAWN_FAILURE
    assert result.output is None
    assert result.exit_code is None


def test_concurrent_runs_read_their_own_program(bridge):
    programs = [f"program {n}" for n in range(6)]
    with ThreadPoolExecutor(max_workers=3) as pool:
        results = list(pool.map(bridge.run_external, programs))
    assert [r.output.strip() for r in results] == [f"ran: program {n}" for n in range(6)]


def test_memory_cap_not_applied_to_bridge(bridge):
    assert bridge.limits.max_memory_mb == 0


def test_unencodable_program_is_not_staged(bridge, staging, spawns):
    result = bridge.run_external("print \ud800")
    assert result.succeeded is False
    assert result.error_kind == ErrorKind.INVALID_INPUT
    assert result.output is None
    assert spawns == []
