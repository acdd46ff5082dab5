"""Pydantic models for request and response bodies.

Field names follow the wire format used by the desktop front-end
(``code_snippet`` for execution, ``code`` for Lumos programs).
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str
    password: str = Field(..., repr=False)


class ExecRequest(BaseModel):
    """Request body for running a code snippet."""

    language: str = Field(..., description="Language identifier, e.g. 'python' or 'rust'.")
    code_snippet: str = Field(..., description="Source code to execute.")


class CommandRequest(BaseModel):
    command: str = Field(..., description="Command line passed to the shell.")
    os_type: Optional[str] = Field(
        default=None,
        description="Shell family: linux-like, 'windows' or 'powershell'. Defaults to linux.",
    )


class NetworkRequest(BaseModel):
    tool: str
    target: Optional[str] = Field(default=None, description="Host to probe. Defaults to 127.0.0.1.")
    options: Optional[List[str]] = Field(
        default=None, description="Extra options; only accepted by tools with an option grammar."
    )


class LumosRequest(BaseModel):
    code: str
    action: Optional[str] = Field(default=None, description="Ignored; the route selects the mode.")
    target: Optional[str] = Field(default=None, description="Compilation target language.")


class DataProcessRequest(BaseModel):
    data: Any
    operation: str


class ApiResponse(BaseModel):
    """Uniform response envelope."""

    success: bool
    message: Optional[str] = None
    data: Optional[Any] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> "ApiResponse":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: str, data: Any = None) -> "ApiResponse":
        return cls(success=False, error=error, data=data)
