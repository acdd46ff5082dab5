"""Tests for the network diagnostic tool dispatcher."""

from __future__ import annotations

import shutil
import sys

import pytest

from lumosgate.errors import ErrorKind, InvalidTarget, InvalidToolOptions
from lumosgate.executor import ResourceLimits
from lumosgate.network import (
    DEFAULT_TARGET,
    NMAP_GRAMMAR,
    TOOLS,
    NetworkToolDispatcher,
    ToolSpec,
    validate_target,
)


LIMITS = ResourceLimits(timeout=20)

# Prints its own argv so tests can see exactly what would have been run
ECHO_ARGS = [sys.executable, "-c", "import sys; print(' '.join(sys.argv[1:]))"]


@pytest.fixture
def dispatcher(staging, admission) -> NetworkToolDispatcher:
    return NetworkToolDispatcher(staging, admission, LIMITS)


@pytest.fixture
def echo_dispatcher(staging, admission) -> NetworkToolDispatcher:
    tools = {
        "scan": ToolSpec(ECHO_ARGS[0], ECHO_ARGS[1:], uses_target=True, grammar=NMAP_GRAMMAR),
        "probe": ToolSpec(ECHO_ARGS[0], [*ECHO_ARGS[1:], "-c", "4"], uses_target=True),
        "table": ToolSpec(ECHO_ARGS[0], [*ECHO_ARGS[1:], "-a"]),
    }
    return NetworkToolDispatcher(staging, admission, LIMITS, tools=tools)


def test_registry_matches_known_tools():
    assert set(TOOLS) == {"ping", "traceroute", "nmap", "ifconfig", "ip", "arp", "netstat", "nslookup", "dig"}
    assert TOOLS["ping"].build("10.0.0.1", []) == ["ping", "-c", "4", "10.0.0.1"]
    assert TOOLS["netstat"].build("10.0.0.1", []) == ["netstat", "-tuln"]


def test_unsupported_tool_spawns_nothing(dispatcher, spawns):
    tagged = dispatcher.run_tool("telnet", "example.com")
    assert tagged.succeeded is False
    assert tagged.result.error_kind == ErrorKind.UNSUPPORTED_TOOL
    assert "telnet" in tagged.result.error
    assert tagged.tool == "telnet"
    assert spawns == []


def test_target_defaults_to_loopback(echo_dispatcher):
    tagged = echo_dispatcher.run_tool("probe")
    assert tagged.succeeded is True
    assert tagged.target == DEFAULT_TARGET
    assert tagged.output == f"-c 4 {DEFAULT_TARGET}"


def test_tool_without_target_ignores_it(echo_dispatcher):
    tagged = echo_dispatcher.run_tool("table", "whatever")
    assert tagged.output == "-a"


def test_allowed_options_are_appended(echo_dispatcher):
    tagged = echo_dispatcher.run_tool("scan", "scanme.example.org", ["-sT", "-T4", "-p", "22,80-90", "--open"])
    assert tagged.succeeded is True
    assert tagged.output == "scanme.example.org -sT -T4 -p 22,80-90 --open"


@pytest.mark.parametrize(
    "options",
    [
        ["-oN", "/tmp/out"],
        ["--script", "exploit"],
        ["-p"],
        ["-p", "22;rm -rf /"],
        ["-T9"],
        ["--top-ports", "-sV"],
    ],
)
def test_disallowed_options_spawn_nothing(echo_dispatcher, spawns, options):
    tagged = echo_dispatcher.run_tool("scan", "127.0.0.1", options)
    assert tagged.succeeded is False
    assert tagged.result.error_kind == ErrorKind.INVALID_TOOL_OPTIONS
    assert spawns == []


def test_options_rejected_for_tool_without_grammar(echo_dispatcher, spawns):
    tagged = echo_dispatcher.run_tool("probe", "127.0.0.1", ["-f"])
    assert tagged.result.error_kind == ErrorKind.INVALID_TOOL_OPTIONS
    assert spawns == []


@pytest.mark.parametrize("target", ["-oN", "foo bar", "a;b", "", "x" * 300])
def test_invalid_targets(target):
    with pytest.raises(InvalidTarget):
        validate_target(target)


@pytest.mark.parametrize("target", ["127.0.0.1", "::1", "10.0.0.0/24", "example.com", "localhost"])
def test_valid_targets(target):
    assert validate_target(target) == target


def test_option_like_target_spawns_nothing(echo_dispatcher, spawns):
    tagged = echo_dispatcher.run_tool("probe", "--help")
    assert tagged.result.error_kind == ErrorKind.INVALID_TARGET
    assert spawns == []


def test_grammar_reports_offending_token():
    with pytest.raises(InvalidToolOptions) as info:
        NMAP_GRAMMAR.validate(["-sT", "--badflag"])
    assert "--badflag" in info.value.message


def test_missing_binary_is_spawn_failure(staging, admission):
    tools = {"ghost": ToolSpec("definitely-not-a-real-tool-xyz", uses_target=True)}
    dispatcher = NetworkToolDispatcher(staging, admission, LIMITS, tools=tools)
    tagged = dispatcher.run_tool("ghost")
    assert tagged.result.error_kind == ErrorKind.SPAWN_FAILURE
    assert tagged.result.exit_code is None


@pytest.mark.skipif(shutil.which("ping") is None, reason="ping not installed")
def test_ping_loopback(dispatcher):
    tagged = dispatcher.run_tool("ping", "127.0.0.1")
    if not tagged.succeeded and "not permitted" in tagged.result.output.lower():
        pytest.skip("ping lacks the privileges to open a raw socket here")
    assert tagged.succeeded is True
    assert tagged.output.splitlines()
