"""
Session and credential handling.

The :class:`CredentialAuthority` is the only entry point the API uses; it
verifies credentials through a pluggable :class:`CredentialVerifier` and
keeps sessions in a thread-safe :class:`SessionStore`.
"""

from .authority import CredentialAuthority
from .credentials import (
    Credential,
    CredentialVerifier,
    StaticCredentialVerifier,
    decode_basic_auth,
    encode_basic_auth,
)
from .store import Session, SessionStore

__all__ = [
    "Credential",
    "CredentialAuthority",
    "CredentialVerifier",
    "Session",
    "SessionStore",
    "StaticCredentialVerifier",
    "decode_basic_auth",
    "encode_basic_auth",
]
