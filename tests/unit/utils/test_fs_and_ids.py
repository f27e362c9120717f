"""Unit tests for filesystem and run-id helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from distgate.utils import atomic_write, force_delete_tree, iter_files_with_suffix
from distgate.utils import ids

if TYPE_CHECKING:
    from pathlib import Path


def _zero_bytes(size: int) -> bytes:
    return b"\x00" * size


def test_run_ids_are_unique_and_time_ordered() -> None:
    generated = [ids.generate_run_id(timestamp_ms=ms) for ms in range(1_000, 1_500)]

    assert len(set(generated)) == len(generated)
    assert generated == sorted(generated)
    assert all(value.startswith("run-") for value in generated)
    assert {len(value) for value in generated} == {len("run-") + ids.ULID_LENGTH}


def test_run_id_is_deterministic_with_injected_randomness() -> None:
    value = ids.generate_run_id(timestamp_ms=0, randbytes=_zero_bytes)

    assert value == "run-" + "0" * ids.ULID_LENGTH


def test_run_id_rejects_bad_inputs() -> None:
    with pytest.raises(ValueError, match="48 bits"):
        ids.generate_run_id(timestamp_ms=1 << 48)
    with pytest.raises(ValueError, match="exactly 10 bytes"):
        ids.generate_run_id(randbytes=lambda size: b"\x00")


def test_atomic_write_replaces_without_leftovers(tmp_path: Path) -> None:
    target = tmp_path / "report.json"
    target.write_text("old", encoding="utf-8")

    atomic_write(target, "new")

    assert target.read_text(encoding="utf-8") == "new"
    assert sorted(path.name for path in tmp_path.iterdir()) == ["report.json"]


def test_iter_files_with_suffix_is_sorted_and_recursive(tmp_path: Path) -> None:
    for relative in ("b.js", "a.js", "nested/c.js", "a.js.map", "types.d.ts"):
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("", encoding="utf-8")

    found = iter_files_with_suffix(tmp_path, (".js",))

    assert [path.relative_to(tmp_path).as_posix() for path in found] == [
        "a.js",
        "b.js",
        "nested/c.js",
    ]
    assert iter_files_with_suffix(tmp_path / "missing", (".js",)) == []


def test_force_delete_tree_refuses_paths_outside_root(tmp_path: Path) -> None:
    root = tmp_path / "root"
    root.mkdir()
    outside = tmp_path / "outside"
    outside.mkdir()

    with pytest.raises(ValueError, match="outside root"):
        force_delete_tree(outside, root)
    with pytest.raises(ValueError, match="outside root"):
        force_delete_tree(root, root)

    inside = root / "sandbox" / "node_modules"
    inside.mkdir(parents=True)
    force_delete_tree(root / "sandbox", root)
    assert not (root / "sandbox").exists()
    force_delete_tree(root / "sandbox", root)
