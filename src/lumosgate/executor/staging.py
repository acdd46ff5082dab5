"""Per-request staging directories.

Every dispatch gets its own directory under the staging root, named after
a generated request id, so concurrent requests never share source files
or build outputs.  The directory is removed when the ``with`` block exits,
whether the dispatch succeeded, failed or raised.
"""

from __future__ import annotations

import contextlib
import logging
import tempfile
import uuid
from pathlib import Path
from typing import Iterator


logger = logging.getLogger(__name__)


class StagingArea:
    """Factory for request-scoped working directories."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def prepare(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        try:
            self.root.chmod(0o700)
        except PermissionError:
            logger.warning("Unable to chmod staging root %s; continuing", self.root)

    @contextlib.contextmanager
    def request_dir(self) -> Iterator[Path]:
        """Yield a fresh directory; raises ``OSError`` if the root is unwritable."""
        self.root.mkdir(parents=True, exist_ok=True)
        request_id = uuid.uuid4().hex
        with tempfile.TemporaryDirectory(prefix=f"req-{request_id}-", dir=str(self.root)) as tmpdir:
            yield Path(tmpdir)
