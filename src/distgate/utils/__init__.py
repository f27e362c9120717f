"""Shared helpers."""

from distgate.utils.fs import atomic_write, force_delete_tree, iter_files_with_suffix
from distgate.utils.ids import generate_run_id

__all__ = [
    "atomic_write",
    "force_delete_tree",
    "generate_run_id",
    "iter_files_with_suffix",
]
