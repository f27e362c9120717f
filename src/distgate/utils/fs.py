"""
distgate — filesystem utilities

File: src/distgate/utils/fs.py
Last updated: 2026-10-16

Purpose
- Provide small filesystem helpers for report writing, containment checks,
  compiled-file iteration, and forced sandbox removal.

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
- Forced deletion refuses paths outside the given root.
- Compiled-file iteration is recursive and deterministic (sorted).

Non-functional requirements
- Standard library only.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import stat
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "force_delete_tree",
    "iter_files_with_suffix",
]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        mode = "wb" if isinstance(data, bytes) else "w"
        with os.fdopen(fd, mode, encoding=None if isinstance(data, bytes) else encoding) as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, target)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def force_delete_tree(path: PathLike, root: PathLike) -> None:
    """
    Recursively delete ``path`` (``rm -rf`` semantics) if it lies inside ``root``.

    A missing target is not an error. Read-only entries are made writable and
    retried once. Symlinks are unlinked without traversing into their targets.
    """

    target = Path(path)
    if not target.exists() and not target.is_symlink():
        return

    workspace = Path(root).resolve(strict=True)
    candidate = target.parent.resolve(strict=True) / target.name
    if not _is_relative_to(candidate, workspace) or candidate == workspace:
        raise ValueError(f"refusing to delete path outside root: {target!s}")

    if target.is_symlink() or not target.is_dir():
        target.unlink()
        return

    shutil.rmtree(target, onexc=_make_writable_and_retry)


def iter_files_with_suffix(root: PathLike, suffixes: Iterable[str]) -> list[Path]:
    """Return every regular file under ``root`` whose name ends with one of ``suffixes``."""

    base = Path(root)
    if not base.is_dir():
        return []
    wanted = tuple(suffixes)
    return sorted(
        candidate
        for candidate in base.rglob("*")
        if candidate.is_file() and candidate.name.endswith(wanted)
    )


def _make_writable_and_retry(func: object, path: str, _exc: BaseException) -> None:
    os.chmod(path, stat.S_IWRITE | stat.S_IREAD | stat.S_IEXEC)
    if callable(func):
        func(path)


def _is_relative_to(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
    except ValueError:
        return False
    return True
