"""Ephemeral install roots with guaranteed, exactly-once release."""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from distgate.constants import MANIFEST_FILENAME, SANDBOX_PREFIX
from distgate.utils.fs import force_delete_tree

logger = logging.getLogger(__name__)

# The install root declares module-format intent and nothing else, so the
# install graph is exactly what the tester places there.
SANDBOX_MANIFEST: dict[str, str] = {"type": "module"}


class SandboxError(RuntimeError):
    """Base error for sandbox failures."""


class SandboxEnvironment:
    """An exclusively owned directory under ``root`` used as a clean install root.

    ``acquire`` allocates a uniquely named ``.tmp-*`` directory and writes the
    synthetic manifest. ``release`` removes it recursively and forcibly; it
    runs at most once and never raises.
    """

    def __init__(self, root: Path | str, *, prefix: str = SANDBOX_PREFIX) -> None:
        resolved = Path(root).resolve(strict=True)
        if not resolved.is_dir():
            raise NotADirectoryError(f"{resolved!s} is not a directory")
        self._root = resolved
        self._prefix = prefix
        self._path: Path | None = None
        self._released = False

    @property
    def root(self) -> Path:
        return self._root

    @property
    def path(self) -> Path:
        if self._path is None:
            raise SandboxError("sandbox has not been acquired")
        if self._released:
            raise SandboxError(f"sandbox {self._path!s} has already been released")
        return self._path

    @property
    def acquired(self) -> bool:
        return self._path is not None

    @property
    def released(self) -> bool:
        return self._released

    def acquire(self) -> Path:
        if self._path is not None:
            raise SandboxError("sandbox already acquired; create a new environment per test")

        path = Path(tempfile.mkdtemp(prefix=self._prefix, dir=self._root))
        self._path = path
        try:
            (path / MANIFEST_FILENAME).write_text(json.dumps(SANDBOX_MANIFEST), encoding="utf-8")
        except OSError:
            self.release()
            raise
        logger.debug("sandbox acquired", extra={"sandbox": path})
        return path

    def release(self) -> bool:
        """Remove the sandbox directory; returns True only on the call that removed it."""
        if self._released or self._path is None:
            return False
        self._released = True
        try:
            force_delete_tree(self._path, self._root)
        except (OSError, ValueError) as exc:
            logger.warning(
                "sandbox cleanup failed; leaving %s behind",
                self._path,
                extra={"error": str(exc)},
            )
            return False
        logger.debug("sandbox released", extra={"sandbox": self._path})
        return True


__all__ = [
    "SANDBOX_MANIFEST",
    "SandboxEnvironment",
    "SandboxError",
]
