"""Credential authority: turns credential proofs into sessions."""

from __future__ import annotations

import logging
from typing import Optional, Union

from ..errors import InvalidCredentials, SessionNotFound
from .credentials import Credential, CredentialVerifier, decode_basic_auth
from .store import Session, SessionStore


logger = logging.getLogger(__name__)


class CredentialAuthority:
    """Mint, authorize and revoke sessions.

    All state lives in the injected :class:`SessionStore`; the authority
    itself holds no copy of session records.
    """

    def __init__(self, verifier: CredentialVerifier, store: SessionStore) -> None:
        self.verifier = verifier
        self.store = store

    def authenticate(
        self, credential: Union[Credential, str], idle_timeout: Optional[int] = None
    ) -> Session:
        """Verify ``credential`` and mint a new session.

        ``credential`` is either a :class:`Credential` (login payload) or a
        decoded Basic-auth value of the form ``username:password``.
        ``idle_timeout`` overrides the store's idle window for the new
        session.
        """
        if isinstance(credential, str):
            credential = Credential.parse(credential)
        if not self.verifier.verify(credential):
            logger.warning("Rejected credentials for user %r", credential.username)
            raise InvalidCredentials("Invalid credentials")
        return self.store.create(credential.username, idle_timeout)

    def authenticate_header(self, header: Optional[str], idle_timeout: Optional[int] = None) -> Session:
        return self.authenticate(decode_basic_auth(header), idle_timeout)

    def authorize(self, token: Optional[str]) -> Session:
        """Resolve ``token`` to its session, refreshing its activity time."""
        if not token:
            raise SessionNotFound("Invalid session")
        session = self.store.touch(token)
        if session is None:
            raise SessionNotFound("Invalid session")
        return session

    def revoke(self, token: str) -> bool:
        return self.store.revoke(token)
