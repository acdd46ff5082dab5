"""
FastAPI application for the execution gateway.

This module wires configuration, the credential authority and the
dispatchers into a FastAPI application and registers the HTTP routes.
Every executing route accepts either an ``Authorization: Basic …`` header
or an ``X-Session-ID`` header; a Basic-auth request mints a session whose
id is echoed back in the ``X-Session-ID`` response header.

Dispatchers block while their child process runs, so every call is moved
to the worker thread pool to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..analytics import aggregate
from ..auth import CredentialAuthority, CredentialVerifier, Session, SessionStore, StaticCredentialVerifier
from ..auth.credentials import Credential
from ..bridge import BridgeResult, TranspilerBridge
from ..commands import CommandDispatcher
from ..config import Config
from ..errors import STATUS_FOR_KIND, AuthError, ErrorKind, GatewayError
from ..executor import (
    AdmissionController,
    ExecutionDispatcher,
    ExecutionResult,
    ResourceLimits,
    StagingArea,
    default_executors,
)
from ..models import (
    ApiResponse,
    CommandRequest,
    DataProcessRequest,
    ExecRequest,
    LoginRequest,
    LumosRequest,
    NetworkRequest,
)
from ..network import NetworkToolDispatcher


VERSION = "2.1.0"

logger = logging.getLogger("lumosgate")

if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("[lumosgate] %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)

logger.setLevel(logging.INFO)


@dataclass
class Gateway:
    """Components shared by the route handlers."""

    config: Config
    authority: CredentialAuthority
    executor: ExecutionDispatcher
    commands: CommandDispatcher
    network: NetworkToolDispatcher
    bridge: TranspilerBridge
    staging: StagingArea
    started_at: float


def build_gateway(config: Config, verifier: Optional[CredentialVerifier] = None) -> Gateway:
    if verifier is None:
        verifier = StaticCredentialVerifier(config.admin_username, config.admin_password)
    store = SessionStore(idle_timeout=config.session_idle_seconds)
    limits = ResourceLimits(
        timeout=config.max_execution_seconds,
        max_cpu_secs=config.max_cpu_secs,
        max_memory_mb=config.max_memory_mb,
    )
    staging = StagingArea(config.staging_path)
    # One controller for every dispatcher: the limit is on host processes
    admission = AdmissionController(config.max_concurrent_jobs, config.max_queued_jobs)
    return Gateway(
        config=config,
        authority=CredentialAuthority(verifier, store),
        executor=ExecutionDispatcher(default_executors(limits), staging, admission, config.allowed_langs),
        commands=CommandDispatcher(staging, admission, limits),
        network=NetworkToolDispatcher(staging, admission, limits),
        bridge=TranspilerBridge(
            staging,
            admission,
            limits,
            binary=config.bridge_binary,
            script=config.bridge_script,
            default_target=config.default_compile_target,
        ),
        staging=staging,
        started_at=time.monotonic(),
    )


async def _sweep_sessions(store: SessionStore, interval: int) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            store.sweep_expired()
        except Exception:
            logger.exception("Session sweep failed")


def _gateway(request: Request) -> Gateway:
    return request.app.state.gateway


def _envelope(request: Request, status_code: int, body: ApiResponse) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))
    issued = getattr(request.state, "issued_session", None)
    if issued:
        response.headers["X-Session-ID"] = issued
    return response


def require_session(request: Request) -> Session:
    """Resolve the caller's session from ``X-Session-ID`` or Basic auth."""
    authority = _gateway(request).authority
    token = request.headers.get("x-session-id")
    if token:
        return authority.authorize(token)
    session = authority.authenticate_header(
        request.headers.get("authorization"), _gateway(request).config.basic_session_idle_seconds
    )
    request.state.issued_session = session.id
    return session


def _status_for(succeeded: bool, kind: Optional[ErrorKind]) -> int:
    if succeeded:
        return 200
    return STATUS_FOR_KIND.get(kind, 500) if kind is not None else 500


async def _call(request: Request, label: str, fn: Callable[..., Any], *args: Any) -> Any:
    try:
        return await run_in_threadpool(fn, *args)
    except Exception as exc:
        logger.exception("[%s] Unhandled error during dispatch: %s", label, exc)
        return _envelope(request, 500, ApiResponse.fail(f"{label} error"))


def _exec_response(request: Request, result: ExecutionResult, data: Optional[Dict[str, Any]]) -> JSONResponse:
    body = ApiResponse(success=result.succeeded, data=data, error=result.error)
    return _envelope(request, _status_for(result.succeeded, result.error_kind), body)


def _bridge_response(request: Request, result: BridgeResult, data: Dict[str, Any]) -> JSONResponse:
    body = ApiResponse(success=result.succeeded, data=data, error=result.error)
    return _envelope(request, _status_for(result.succeeded, result.error_kind), body)


router = APIRouter()


@router.get("/health")
async def health() -> Dict[str, str]:
    """Return a simple health check response."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/status")
async def status(request: Request) -> Dict[str, Any]:
    gateway = _gateway(request)
    return {
        "os": "LumOS Kernel (Python Host)",
        "version": VERSION,
        "languages_loaded": gateway.executor.languages,
        "uptime": f"{int(time.monotonic() - gateway.started_at)}s",
        "hostname": socket.gethostname(),
        "network_tools_available": gateway.network.tool_names,
    }


@router.post("/auth/login")
async def login(request: Request, req: LoginRequest) -> JSONResponse:
    authority = _gateway(request).authority
    session = authority.authenticate(Credential(req.username, req.password))
    return _envelope(
        request,
        200,
        ApiResponse.ok({"session_id": session.id, "username": session.username}),
    )


@router.post("/auth/logout")
async def logout(request: Request) -> JSONResponse:
    token = (request.headers.get("x-session-id") or "").strip()
    if not token:
        return _envelope(request, 400, ApiResponse.fail("Invalid session"))
    revoked = _gateway(request).authority.revoke(token)
    message = "Logged out successfully" if revoked else "Session not found"
    return _envelope(request, 200, ApiResponse.ok({"message": message, "revoked": revoked}))


@router.post("/execute")
async def execute_code(
    request: Request,
    req: ExecRequest,
    session: Session = Depends(require_session),
) -> JSONResponse:
    logger.info("[/execute] %s requested %s", session.username, req.language)
    result = await _call(request, "Execution", _gateway(request).executor.execute, req.language, req.code_snippet)
    if isinstance(result, JSONResponse):
        return result
    data = None
    if result.exit_code is not None:
        data = {
            "stdout": result.stdout,
            "stderr": result.stderr,
            "output": result.output,
            "exit_code": result.exit_code,
            "duration_ms": result.duration_ms,
            "timed_out": result.timed_out,
            "stage": result.stage,
        }
    return _exec_response(request, result, data)


@router.post("/command")
async def execute_command(
    request: Request,
    req: CommandRequest,
    session: Session = Depends(require_session),
) -> JSONResponse:
    logger.info("[/command] %s requested a %s command", session.username, req.os_type or "linux")
    result = await _call(request, "Command", _gateway(request).commands.run_command, req.command, req.os_type)
    if isinstance(result, JSONResponse):
        return result
    data = None
    if result.exit_code is not None:
        data = {"output": result.output, "exit_code": result.exit_code}
    return _exec_response(request, result, data)


@router.post("/network/tool")
async def network_tool(
    request: Request,
    req: NetworkRequest,
    session: Session = Depends(require_session),
) -> JSONResponse:
    logger.info("[/network/tool] %s requested %s", session.username, req.tool)
    tagged = await _call(
        request, "Network tool", _gateway(request).network.run_tool, req.tool, req.target, req.options
    )
    if isinstance(tagged, JSONResponse):
        return tagged
    result = tagged.result
    data: Dict[str, Any] = {"tool": tagged.tool, "target": tagged.target}
    if result.exit_code is not None:
        data.update(output=result.output, exit_code=result.exit_code)
    return _exec_response(request, result, data)


@router.post("/lumos/execute")
async def lumos_execute(
    request: Request,
    req: LumosRequest,
    session: Session = Depends(require_session),
) -> JSONResponse:
    result = await _call(request, "Lumos execution", _gateway(request).bridge.run_external, req.code)
    if isinstance(result, JSONResponse):
        return result
    data = {"output": result.output, "success": result.succeeded, "exit_code": result.exit_code}
    return _bridge_response(request, result, data)


@router.post("/lumos/compile")
async def lumos_compile(
    request: Request,
    req: LumosRequest,
    session: Session = Depends(require_session),
) -> JSONResponse:
    result = await _call(
        request, "Lumos compilation", _gateway(request).bridge.compile_external, req.code, req.target
    )
    if isinstance(result, JSONResponse):
        return result
    data = {"compiled": result.compiled, "target": result.target, "success": result.succeeded}
    return _bridge_response(request, result, data)


@router.post("/data/process")
async def data_process(
    request: Request,
    req: DataProcessRequest,
    session: Session = Depends(require_session),
) -> JSONResponse:
    return _envelope(request, 200, ApiResponse.ok(aggregate(req.operation, req.data)))


def create_app(config: Optional[Config] = None, verifier: Optional[CredentialVerifier] = None) -> FastAPI:
    """Build the application.  Tests pass their own config and verifier."""
    config = config or Config.from_env()
    gateway = build_gateway(config, verifier)

    logger.info(
        "Loaded config: staging_path=%s, languages=%s, max_exec=%ss, jobs=%s+%s queued",
        config.staging_path,
        gateway.executor.languages,
        config.max_execution_seconds,
        config.max_concurrent_jobs,
        config.max_queued_jobs,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        gateway.staging.prepare()
        sweeper = asyncio.create_task(
            _sweep_sessions(gateway.authority.store, config.session_sweep_seconds)
        )
        try:
            yield
        finally:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper

    app = FastAPI(title="LumOS Execution Gateway", version=VERSION, lifespan=lifespan)
    app.state.gateway = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Session-ID"],
        max_age=3600,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every request and the status it was answered with."""
        if not config.log_requests:
            return await call_next(request)
        client = getattr(request.client, "host", "unknown")
        logger.info("Incoming request: %s %s from %s", request.method, request.url.path, client)
        response = await call_next(request)
        logger.info("Response: %s %s -> %s", request.method, request.url.path, response.status_code)
        return response

    @app.exception_handler(GatewayError)
    async def gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
        if isinstance(exc, AuthError):
            logger.warning("Auth failure on %s: %s", request.url.path, exc.message)
        response = _envelope(request, exc.status_code, ApiResponse.fail(exc.message))
        if exc.status_code == 401:
            response.headers["WWW-Authenticate"] = 'Basic realm="lumos"'
        return response

    app.include_router(router)
    return app


config = Config.from_env()
app = create_app(config)
