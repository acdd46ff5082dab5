"""Credential parsing and verification.

Verification is a capability: the authority is handed a
:class:`CredentialVerifier` rather than comparing against literals itself,
so deployments can plug in a real identity backend.
"""

from __future__ import annotations

import abc
import base64
import binascii
import hmac
from dataclasses import dataclass
from typing import Optional

from ..errors import MalformedAuth, MissingCredentials


@dataclass(frozen=True)
class Credential:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credential(username={self.username!r}, password='***')"

    @classmethod
    def parse(cls, value: str) -> "Credential":
        """Split a decoded ``username:password`` pair."""
        username, sep, password = value.partition(":")
        if not sep:
            raise MalformedAuth("Invalid credentials format")
        return cls(username=username, password=password)


def decode_basic_auth(header: Optional[str]) -> Credential:
    """Decode an ``Authorization: Basic …`` header value.

    Raises
    ------
    MissingCredentials
        When no header was sent.
    MalformedAuth
        When the scheme, base64 payload, text encoding or
        ``username:password`` shape is wrong.
    """
    if header is None or not header.strip():
        raise MissingCredentials("No authorization header")
    if not header.startswith("Basic "):
        raise MalformedAuth("Invalid authorization type")
    encoded = header[len("Basic "):].strip()
    try:
        decoded = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise MalformedAuth("Failed to decode credentials")
    try:
        text = decoded.decode("utf-8")
    except UnicodeDecodeError:
        raise MalformedAuth("Invalid UTF-8 in credentials")
    return Credential.parse(text)


def encode_basic_auth(username: str, password: str) -> str:
    """Build the header value for a username/password pair."""
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


class CredentialVerifier(abc.ABC):
    """Decides whether a credential proves an identity."""

    @abc.abstractmethod
    def verify(self, credential: Credential) -> bool:
        raise NotImplementedError


class StaticCredentialVerifier(CredentialVerifier):
    """Accept exactly one configured username/password pair."""

    def __init__(self, username: str, password: str) -> None:
        self._username = username.encode("utf-8")
        self._password = password.encode("utf-8")

    def verify(self, credential: Credential) -> bool:
        # Evaluate both comparisons so timing does not reveal which one failed.
        user_ok = hmac.compare_digest(credential.username.encode("utf-8"), self._username)
        pass_ok = hmac.compare_digest(credential.password.encode("utf-8"), self._password)
        return user_ok and pass_ok
