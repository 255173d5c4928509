"""Utility functions for ragdesk."""

from .file_utils import (
    ensure_dir,
    text_sha256,
    atomic_write_text,
    write_json,
    read_json,
)

__all__ = [
    "ensure_dir",
    "text_sha256",
    "atomic_write_text",
    "write_json",
    "read_json",
]
