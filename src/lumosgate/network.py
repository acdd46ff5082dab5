"""
Network diagnostic tool dispatcher.

Each tool name maps to one fixed command template.  Tools that probe a
host take a target (defaulting to the loopback address); the target must
be an IP address, a CIDR network or a hostname so it can never be read as
an option.  Only tools that declare an :class:`OptionGrammar` accept extra
caller options, and every option token is validated against that grammar
before anything is spawned.
"""

from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Pattern, Sequence

from .errors import ErrorKind, InvalidTarget, InvalidToolOptions
from .executor.admission import AdmissionController
from .executor.base import ExecutionResult, ResourceLimits, run_process
from .executor.dispatcher import Dispatcher
from .executor.staging import StagingArea


logger = logging.getLogger(__name__)

DEFAULT_TARGET = "127.0.0.1"

_HOSTNAME = re.compile(
    r"^(?=.{1,253}\.?$)[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*\.?$"
)


def validate_target(target: str) -> str:
    """Return ``target`` if it is an IP address, CIDR network or hostname."""
    candidate = target.strip()
    if not candidate or candidate.startswith("-"):
        raise InvalidTarget(f"Invalid target: {target!r}")
    try:
        ipaddress.ip_network(candidate, strict=False)
        return candidate
    except ValueError:
        pass
    if _HOSTNAME.match(candidate):
        return candidate
    raise InvalidTarget(f"Invalid target: {target!r}")


@dataclass(frozen=True)
class OptionGrammar:
    """Allow-list of option tokens for one tool.

    ``flags`` are accepted as-is, ``patterns`` match whole standalone
    tokens (``-T4``), and ``value_flags`` take the next token as their
    value, which must match the associated pattern.
    """

    flags: FrozenSet[str] = frozenset()
    patterns: Sequence[Pattern[str]] = ()
    value_flags: Dict[str, Pattern[str]] = field(default_factory=dict)

    def validate(self, options: Sequence[str]) -> List[str]:
        accepted: List[str] = []
        tokens = iter(options)
        for token in tokens:
            if token in self.flags or any(p.fullmatch(token) for p in self.patterns):
                accepted.append(token)
                continue
            if token in self.value_flags:
                value = next(tokens, None)
                if value is None or not self.value_flags[token].fullmatch(value):
                    raise InvalidToolOptions(f"Invalid value for option {token}: {value!r}")
                accepted.extend([token, value])
                continue
            raise InvalidToolOptions(f"Option not allowed: {token!r}")
        return accepted


NMAP_GRAMMAR = OptionGrammar(
    flags=frozenset({"-sT", "-sn", "-sV", "-Pn", "-F", "-n", "-v", "-6", "--open"}),
    patterns=(re.compile(r"-T[0-5]"),),
    value_flags={
        "-p": re.compile(r"\d{1,5}(?:-\d{1,5})?(?:,\d{1,5}(?:-\d{1,5})?)*"),
        "--top-ports": re.compile(r"\d{1,4}"),
    },
)


@dataclass(frozen=True)
class ToolSpec:
    """How to invoke one tool: fixed arguments, then the target, then options."""

    binary: str
    args: Sequence[str] = ()
    uses_target: bool = False
    grammar: Optional[OptionGrammar] = None

    def build(self, target: str, options: Sequence[str]) -> List[str]:
        argv = [self.binary, *self.args]
        if self.uses_target:
            argv.append(target)
        argv.extend(options)
        return argv


TOOLS: Dict[str, ToolSpec] = {
    "ping": ToolSpec("ping", ["-c", "4"], uses_target=True),
    "traceroute": ToolSpec("traceroute", uses_target=True),
    "nmap": ToolSpec("nmap", uses_target=True, grammar=NMAP_GRAMMAR),
    "ifconfig": ToolSpec("ifconfig"),
    "ip": ToolSpec("ip", ["addr"]),
    "arp": ToolSpec("arp", ["-a"]),
    "netstat": ToolSpec("netstat", ["-tuln"]),
    "nslookup": ToolSpec("nslookup", uses_target=True),
    "dig": ToolSpec("dig", uses_target=True),
}


@dataclass
class NetworkToolResult:
    """Execution result tagged with the resolved tool and target."""

    tool: str
    target: str
    result: ExecutionResult

    @property
    def succeeded(self) -> bool:
        return self.result.succeeded

    @property
    def output(self) -> str:
        return self.result.output


class NetworkToolDispatcher(Dispatcher):
    """Run allow-listed network diagnostics against a validated target.

    Parameters
    ----------
    staging: StagingArea
        Root of the per-request working directories.
    admission: AdmissionController
        Shared limit on concurrently running jobs.
    limits: ResourceLimits
        Deadline and rlimits for each tool run.
    tools: dict, optional
        Tool name to :class:`ToolSpec`.  Defaults to :data:`TOOLS`.
    """

    def __init__(
        self,
        staging: StagingArea,
        admission: AdmissionController,
        limits: ResourceLimits,
        tools: Optional[Dict[str, ToolSpec]] = None,
    ) -> None:
        super().__init__(staging, admission)
        self.limits = limits
        self.tools = dict(TOOLS if tools is None else tools)

    @property
    def tool_names(self) -> List[str]:
        return sorted(self.tools)

    def run_tool(
        self,
        tool: str,
        target: Optional[str] = None,
        options: Optional[Sequence[str]] = None,
    ) -> NetworkToolResult:
        resolved_target = target if target is not None and target.strip() else DEFAULT_TARGET
        spec = self.tools.get((tool or "").strip().lower())
        if spec is None:
            logger.warning("Unsupported network tool: %s", tool)
            return NetworkToolResult(
                tool,
                resolved_target,
                ExecutionResult.failure(f"Unsupported network tool: {tool}", ErrorKind.UNSUPPORTED_TOOL),
            )

        try:
            if spec.uses_target:
                resolved_target = validate_target(resolved_target)
            extra: List[str] = []
            if options:
                if spec.grammar is None:
                    raise InvalidToolOptions(f"Tool {tool} does not accept options")
                extra = spec.grammar.validate(options)
        except InvalidTarget as exc:
            return NetworkToolResult(
                tool, resolved_target, ExecutionResult.failure(exc.message, ErrorKind.INVALID_TARGET)
            )
        except InvalidToolOptions as exc:
            logger.warning("Rejected options for %s: %s", tool, exc.message)
            return NetworkToolResult(
                tool, resolved_target, ExecutionResult.failure(exc.message, ErrorKind.INVALID_TOOL_OPTIONS)
            )

        argv = spec.build(resolved_target, extra)
        logger.info("Running network tool: %s", " ".join(argv))
        result = self._dispatch(
            lambda staging_dir: run_process(argv, staging_dir, self.limits, "Tool execution failed")
        )
        return NetworkToolResult(tool, resolved_target, result)
