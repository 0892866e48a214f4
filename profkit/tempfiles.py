"""Numbered output files and deferred removal of temporary files."""

from __future__ import annotations

import os
import threading
from typing import BinaryIO

_MAX_INDEX = 10000

_temp_files: list[str] = []
_temp_files_lock = threading.Lock()


def new_temp_file(directory: str | os.PathLike, prefix: str, suffix: str) -> BinaryIO:
    """Create and open for writing the first free file named prefix+NNN+suffix."""
    for index in range(1, _MAX_INDEX):
        path = os.path.join(directory, f"{prefix}{index:03d}{suffix}")
        try:
            os.stat(path)
        except OSError:
            return open(path, "wb")
    raise FileExistsError(f"could not create file of the form {prefix}{1:03d}{suffix}")


def defer_delete_temp_file(path: str | os.PathLike) -> None:
    """Mark a file to be removed by the next call to cleanup_temp_files()."""
    with _temp_files_lock:
        _temp_files.append(os.fspath(path))


def cleanup_temp_files() -> None:
    """Remove every file marked for deferred deletion, ignoring failures."""
    with _temp_files_lock:
        for path in _temp_files:
            try:
                os.remove(path)
            except OSError:
                pass
        _temp_files.clear()