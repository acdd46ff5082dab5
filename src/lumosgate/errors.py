"""Error taxonomy shared by the gateway.

Two families live here:

* :class:`GatewayError` subclasses are raised for requests that are
  rejected before any process is started (bad credentials, unknown
  session, malformed payloads).  Each carries the HTTP status code the API
  answers with.
* :class:`ErrorKind` tags the outcome of a dispatcher call.  Dispatchers
  never raise for execution outcomes; they return a result whose
  ``error_kind`` says what went wrong.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification attached to a failed execution result."""

    UNSUPPORTED_LANGUAGE = "UnsupportedLanguage"
    UNSUPPORTED_TOOL = "UnsupportedTool"
    UNSUPPORTED_OS_TYPE = "UnsupportedOsType"
    INVALID_TARGET = "InvalidTarget"
    INVALID_TOOL_OPTIONS = "InvalidToolOptions"
    INVALID_INPUT = "InvalidInput"
    SPAWN_FAILURE = "SpawnFailure"
    NON_ZERO_EXIT = "NonZeroExit"
    COMPILE_FAILURE = "CompileFailure"
    BRIDGE_FAILURE = "BridgeFailure"
    TIMED_OUT = "TimedOut"
    REJECTED = "Rejected"
    STAGING_FAILURE = "StagingFailure"


# HTTP status used by the API for each failure kind.  A process that ran
# and exited non-zero is still a successful HTTP exchange.
STATUS_FOR_KIND = {
    ErrorKind.UNSUPPORTED_LANGUAGE: 400,
    ErrorKind.UNSUPPORTED_TOOL: 400,
    ErrorKind.UNSUPPORTED_OS_TYPE: 400,
    ErrorKind.INVALID_TARGET: 400,
    ErrorKind.INVALID_TOOL_OPTIONS: 400,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.SPAWN_FAILURE: 500,
    ErrorKind.STAGING_FAILURE: 500,
    ErrorKind.NON_ZERO_EXIT: 200,
    ErrorKind.COMPILE_FAILURE: 200,
    ErrorKind.BRIDGE_FAILURE: 200,
    ErrorKind.TIMED_OUT: 504,
    ErrorKind.REJECTED: 503,
}


class GatewayError(Exception):
    """Base class for errors rendered into the API response envelope."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthError(GatewayError):
    status_code = 401


class MalformedAuth(AuthError):
    """The credential proof has the wrong shape (scheme, encoding, format)."""

    status_code = 400


class MissingCredentials(MalformedAuth):
    """No credential proof was supplied at all."""

    status_code = 401


class InvalidCredentials(AuthError):
    """A well-formed credential that does not verify."""


class SessionNotFound(AuthError):
    """The session token is unknown, revoked or expired."""


class RequestRejected(GatewayError):
    status_code = 400


class InvalidTarget(RequestRejected):
    pass


class InvalidToolOptions(RequestRejected):
    pass


class InvalidPayload(RequestRejected):
    pass


class UnsupportedOperation(RequestRejected):
    pass
