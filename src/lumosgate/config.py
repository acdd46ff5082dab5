"""Configuration loader.

The gateway reads its configuration from environment variables so that the
same image can run locally and behind a hosting platform.  Reasonable
defaults are provided so that local development works out of the box.

Environment variables:

``LUMOS_ADMIN_USERNAME`` / ``LUMOS_ADMIN_PASSWORD``
    Identity accepted by the static credential verifier.  Defaults to
    ``admin`` / ``admin123``; override both in any shared deployment.

``LUMOS_SESSION_IDLE_SECONDS``
    Idle timeout for sessions.  A session not used for this long is
    treated as logged out.  ``0`` disables expiry.  Default is 1800.

``LUMOS_BASIC_SESSION_IDLE_SECONDS``
    Idle timeout for sessions minted implicitly by a request that carried
    Basic auth instead of ``X-Session-ID``.  ``0`` disables expiry.
    Default is 300.

``LUMOS_SESSION_SWEEP_SECONDS``
    Interval between background sweeps of idle sessions.  Default is 60.

``LUMOS_STAGING_PATH``
    Root directory under which per-request staging directories are
    created.  Defaults to ``/tmp/lumosgate``.

``LUMOS_ALLOWED_LANGS``
    Comma-separated list of languages permitted for execution.  Empty or
    unset means every registered language.

``LUMOS_MAX_EXECUTION_SECONDS``
    Wall-clock timeout (in seconds) for a single child process.  Default 30.

``LUMOS_MAX_CPU_SECS``
    CPU time limit (in seconds) applied per child process.  Default 30.

``LUMOS_MAX_MEMORY_MB``
    Address-space limit (in megabytes) for recipes that tolerate one.
    ``0`` disables the cap.  Default 512.

``LUMOS_MAX_CONCURRENT_JOBS`` / ``LUMOS_MAX_QUEUED_JOBS``
    Admission control: how many child processes may run at once and how
    many more jobs may wait before new ones are rejected.  Defaults 4 / 16.

``LUMOS_BRIDGE_BINARY`` / ``LUMOS_BRIDGE_SCRIPT``
    Interpreter and entry script of the external transpiler bridge.
    Defaults to ``node`` and ``/app/backend/lumos-engine/index.cjs``.

``LUMOS_DEFAULT_COMPILE_TARGET``
    Target used by the bridge when a compile request names none.  Default
    ``python``.

``LUMOS_CORS_ORIGINS``
    Comma-separated list of browser origins allowed by CORS.

``LUMOS_LOG_REQUESTS``
    Log each HTTP request and its response status.  Default ``true``.

``PORT``
    The port on which the API server listens.  Defaults to 8080.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y"}


def _parse_list(value: str | None, default: str = "") -> List[str]:
    raw = default if value is None else value
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Config:
    """Centralised configuration object."""

    admin_username: str = "admin"
    admin_password: str = "admin123"
    session_idle_seconds: int = 1800
    basic_session_idle_seconds: int = 300
    session_sweep_seconds: int = 60
    staging_path: str = "/tmp/lumosgate"
    allowed_langs: List[str] = field(default_factory=list)
    max_execution_seconds: int = 30
    max_cpu_secs: int = 30
    max_memory_mb: int = 512
    max_concurrent_jobs: int = 4
    max_queued_jobs: int = 16
    bridge_binary: str = "node"
    bridge_script: str = "/app/backend/lumos-engine/index.cjs"
    default_compile_target: str = "python"
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    log_requests: bool = True
    port: int = 8080

    @classmethod
    def load(cls) -> "Config":
        def _int_var(name: str, default: int, minimum: int = 0) -> int:
            val = os.getenv(name)
            if val is None:
                return default
            try:
                parsed = int(val)
            except ValueError:
                raise ValueError(f"Invalid integer for {name}: {val}")
            if parsed < minimum:
                raise ValueError(f"{name} must be >= {minimum}, got {parsed}")
            return parsed

        admin_username = os.getenv("LUMOS_ADMIN_USERNAME", "admin")
        admin_password = os.getenv("LUMOS_ADMIN_PASSWORD", "admin123")
        if not admin_username or not admin_password:
            raise ValueError("LUMOS_ADMIN_USERNAME and LUMOS_ADMIN_PASSWORD must not be empty")

        allowed_langs = [lang.lower() for lang in _parse_list(os.getenv("LUMOS_ALLOWED_LANGS"))]

        return cls(
            admin_username=admin_username,
            admin_password=admin_password,
            session_idle_seconds=_int_var("LUMOS_SESSION_IDLE_SECONDS", 1800),
            basic_session_idle_seconds=_int_var("LUMOS_BASIC_SESSION_IDLE_SECONDS", 300),
            session_sweep_seconds=_int_var("LUMOS_SESSION_SWEEP_SECONDS", 60, minimum=1),
            staging_path=os.getenv("LUMOS_STAGING_PATH", "/tmp/lumosgate"),
            allowed_langs=allowed_langs,
            max_execution_seconds=_int_var("LUMOS_MAX_EXECUTION_SECONDS", 30, minimum=1),
            max_cpu_secs=_int_var("LUMOS_MAX_CPU_SECS", 30),
            max_memory_mb=_int_var("LUMOS_MAX_MEMORY_MB", 512),
            max_concurrent_jobs=_int_var("LUMOS_MAX_CONCURRENT_JOBS", 4, minimum=1),
            max_queued_jobs=_int_var("LUMOS_MAX_QUEUED_JOBS", 16),
            bridge_binary=os.getenv("LUMOS_BRIDGE_BINARY", "node"),
            bridge_script=os.getenv("LUMOS_BRIDGE_SCRIPT", "/app/backend/lumos-engine/index.cjs"),
            default_compile_target=os.getenv("LUMOS_DEFAULT_COMPILE_TARGET", "python"),
            cors_origins=_parse_list(os.getenv("LUMOS_CORS_ORIGINS"), "http://localhost:3000"),
            log_requests=_parse_bool(os.getenv("LUMOS_LOG_REQUESTS"), True),
            port=_int_var("PORT", 8080, minimum=1),
        )

    @classmethod
    def from_env(cls) -> "Config":
        """
        Alternate constructor used by the API to load configuration.

        This wrapper calls :meth:`load` to construct the configuration.
        It exists to provide a more intuitive name when consumed in
        application code.
        """
        return cls.load()
