"""Tests for the shell command dispatcher."""

from __future__ import annotations

import pytest

from lumosgate.commands import CommandDispatcher
from lumosgate.errors import ErrorKind
from lumosgate.executor import ResourceLimits


@pytest.fixture
def dispatcher(staging, admission) -> CommandDispatcher:
    return CommandDispatcher(staging, admission, ResourceLimits(timeout=10))


def test_linux_command_runs_in_shell(dispatcher):
    result = dispatcher.run_command("echo one && echo two")
    assert result.succeeded is True
    assert result.stdout.splitlines() == ["one", "two"]


@pytest.mark.parametrize("os_type", ["linux", "Ubuntu", "kali", "macos"])
def test_unix_families_share_sh(dispatcher, spawns, os_type):
    dispatcher.run_command("true", os_type)
    assert spawns == [["sh", "-c", "true"]]


def test_unsupported_os_type_spawns_nothing(dispatcher, spawns):
    result = dispatcher.run_command("ver", "beos")
    assert result.succeeded is False
    assert result.error_kind == ErrorKind.UNSUPPORTED_OS_TYPE
    assert "beos" in result.error
    assert spawns == []


def test_failed_command_reports_exit_code(dispatcher):
    result = dispatcher.run_command("echo nope >&2; exit 4")
    assert result.succeeded is False
    assert result.exit_code == 4
    assert result.error == "Command execution failed"
    assert result.stderr.strip() == "nope"


def test_command_runs_in_private_directory(dispatcher, staging):
    result = dispatcher.run_command("pwd")
    cwd = result.stdout.strip()
    assert cwd.startswith(str(staging.root))
    assert cwd != str(staging.root)


def test_nul_in_command_is_rejected(dispatcher, spawns):
    result = dispatcher.run_command("echo a\x00b")
    assert result.succeeded is False
    assert result.error_kind == ErrorKind.INVALID_INPUT
    assert result.error == "Invalid command: contains a NUL character"
    assert spawns == []


def test_lone_surrogate_in_command_is_rejected(dispatcher, spawns):
    result = dispatcher.run_command("echo \ud800")
    assert result.error_kind == ErrorKind.INVALID_INPUT
    assert spawns == []
