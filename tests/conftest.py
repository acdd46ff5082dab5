"""Shared fixtures for the gateway tests."""

from __future__ import annotations

import subprocess
import sys
import textwrap
from pathlib import Path
from typing import Dict, List

import pytest
from fastapi.testclient import TestClient

from lumosgate.api.main import create_app
from lumosgate.auth import Credential, CredentialVerifier, encode_basic_auth
from lumosgate.config import Config
from lumosgate.executor import AdmissionController, StagingArea
from lumosgate.executor import base


USERNAME = "tester"
PASSWORD = "s3cret"


class InMemoryCredentialVerifier(CredentialVerifier):
    """Accept any pair present in a dictionary."""

    def __init__(self, users: Dict[str, str]) -> None:
        self.users = dict(users)
        self.calls: List[str] = []

    def verify(self, credential: Credential) -> bool:
        self.calls.append(credential.username)
        return self.users.get(credential.username) == credential.password


# Stands in for the Lumos engine: echoes its arguments and the staged
# program, fails when the program contains "fail" and writes to stderr
# when it contains "warn".
FAKE_BRIDGE = textwrap.dedent(
    """
    import sys
    args = sys.argv[1:]
    path = args[1] if args and args[0] == "compile" else args[0]
    with open(path, encoding="utf-8") as fh:
        program = fh.read()
    if args[0] == "compile":
        print("compiled[%s]: %s" % (args[2], program))
    else:
        print("ran: %s" % program)
    if "warn" in program:
        sys.stderr.write("warning: %s" % program)
    if "fail" in program:
        sys.exit(1)
    """
)


@pytest.fixture
def verifier() -> InMemoryCredentialVerifier:
    return InMemoryCredentialVerifier({USERNAME: PASSWORD})


@pytest.fixture
def fake_bridge(tmp_path: Path) -> Path:
    script = tmp_path / "fake_bridge.py"
    script.write_text(FAKE_BRIDGE, encoding="utf-8")
    return script


@pytest.fixture
def config(tmp_path: Path, fake_bridge: Path) -> Config:
    return Config(
        staging_path=str(tmp_path / "staging"),
        max_execution_seconds=10,
        bridge_binary=sys.executable,
        bridge_script=str(fake_bridge),
        log_requests=False,
    )


@pytest.fixture
def app(config, verifier):
    return create_app(config, verifier)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def basic_auth() -> Dict[str, str]:
    return {"Authorization": encode_basic_auth(USERNAME, PASSWORD)}


@pytest.fixture
def staging(tmp_path: Path) -> StagingArea:
    return StagingArea(tmp_path / "staging")


@pytest.fixture
def admission() -> AdmissionController:
    return AdmissionController(max_concurrent=4, max_queued=4)


@pytest.fixture
def spawns(monkeypatch) -> List[List[str]]:
    """Record the argv of every process the runner starts."""
    calls: List[List[str]] = []
    real_popen = subprocess.Popen

    def counting_popen(args, *a, **kw):
        calls.append(list(args))
        return real_popen(args, *a, **kw)

    monkeypatch.setattr(base.subprocess, "Popen", counting_popen)
    return calls
