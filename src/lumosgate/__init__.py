"""LumOS execution gateway package.

This package exposes an HTTP gateway that runs source code, shell
commands and network diagnostics through pre-installed host binaries, and
bridges to the external Lumos transpiler.

The top-level modules include:

* ``config`` – configuration handling for environment variables.
* ``errors`` – error taxonomy and HTTP status mapping.
* ``auth`` – credential verification and the session store.
* ``executor`` – process runner, staging, admission control and language executors.
* ``commands`` – shell command dispatcher.
* ``network`` – network diagnostic tool dispatcher.
* ``bridge`` – external transpiler bridge.
* ``models`` – Pydantic models defining request and response schemas.
* ``api`` – FastAPI application exposing HTTP endpoints.
"""

__version__ = "2.1.0"
