"""Profile mappings: where their binaries live and which sources they came from."""

from __future__ import annotations

import os
import re
import sys
from dataclasses import dataclass
from typing import Any, Iterable, Iterator

_SCHEME = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*:")


@dataclass
class Mapping:
    """A memory mapping of a profiled binary."""

    id: int = 0
    start: int = 0
    limit: int = 0
    offset: int = 0
    file: str = ""
    build_id: str = ""


@dataclass(frozen=True)
class MappingSource:
    """The remote source a mapping was fetched from, with its start address."""

    source: str
    start: int


MappingSources = dict[str, list[MappingSource]]


def home_env() -> str:
    """Name of the environment variable that holds the user's home directory."""
    return "USERPROFILE" if sys.platform.startswith("win") else "HOME"


def is_absolute_url(value: str) -> bool:
    """Report whether value parses as a URL with a scheme."""
    if any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in value):
        return False
    return _SCHEME.match(value) is not None


def collect_mapping_sources(mappings: Iterable[Mapping], source: str) -> MappingSources:
    """Key each mapping by build ID or file name and record its source.

    Mappings with neither get the source as their file, so they can be
    symbolized remotely; unsource_mappings undoes this afterwards.
    """
    sources: MappingSources = {}
    for mapping in mappings:
        key = mapping.build_id or mapping.file
        if not key:
            mapping.file = source
            key = source
        sources.setdefault(key, []).append(MappingSource(source, mapping.start))
    return sources


def unsource_mappings(mappings: Iterable[Mapping]) -> None:
    """Clear file names that collect_mapping_sources set to a source URL."""
    for mapping in mappings:
        if not mapping.build_id and is_absolute_url(mapping.file):
            mapping.file = ""


def merge_mapping_sources(sources: Iterable[MappingSources]) -> MappingSources:
    """Combine several mapping-source tables, concatenating lists per key."""
    merged: MappingSources = {}
    for table in sources:
        for key, entries in table.items():
            merged.setdefault(key, []).extend(entries)
    return merged


def _join(*elements: str) -> str:
    parts = [element for element in elements if element]
    if not parts:
        return ""
    return os.path.normpath(os.sep.join(parts))


def _base(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip(os.sep + (os.altsep or ""))
    if not stripped:
        return os.sep
    return os.path.basename(stripped)


def _directory_entries(directory: str) -> list[str]:
    try:
        names = os.listdir(directory)
    except OSError:
        return []
    return [_join(directory, name) for name in sorted(names)]


def _candidates(directory: str, mapping: Mapping, base_name: str) -> Iterator[str]:
    if mapping.build_id:
        yield _join(directory, mapping.build_id, base_name)
        yield from _directory_entries(_join(directory, mapping.build_id))
        yield _join(directory, mapping.file, mapping.build_id)  # perf path format
    if mapping.file:
        # Both the base name and the full path, as with perf's symfs layout.
        if base_name:
            yield _join(directory, base_name)
        yield _join(directory, mapping.file)


def _open_build_id(obj: Any, name: str, mapping: Mapping) -> str | None:
    try:
        handle = obj.open(name, mapping.start, mapping.limit, mapping.offset)
    except (OSError, ValueError):
        return None
    try:
        return handle.build_id
    finally:
        handle.close()


def _find_local_binary(mapping: Mapping, search_path: str, obj: Any, ui: Any) -> str | None:
    base_name = _base(mapping.file) if mapping.file else ""
    for directory in search_path.split(os.pathsep):
        for name in _candidates(directory, mapping, base_name):
            file_build_id = _open_build_id(obj, name, mapping)
            if file_build_id is None:
                continue
            if mapping.build_id and mapping.build_id != file_build_id:
                ui.print_err(
                    f"Ignoring local file {name}: build-id mismatch "
                    f"({mapping.build_id} != {file_build_id})"
                )
                continue
            return name
    return None


def locate_binaries(mappings: list[Mapping], exec_name: str, build_id: str,
                    obj: Any, ui: Any) -> list[Mapping]:
    """Point mappings at local copies of their binaries where one can be found.

    The search path comes from PPROF_BINARY_PATH, defaulting to
    $HOME/pprof/binaries. An empty list gains a placeholder mapping with ID 1
    so that symbolization can still be attempted. exec_name and build_id,
    when given, override the first mapping. The same list is returned.
    """
    search_path = os.environ.get("PPROF_BINARY_PATH", "")
    if not search_path:
        search_path = _join(os.environ.get(home_env(), ""), "pprof", "binaries")

    for mapping in mappings:
        found = _find_local_binary(mapping, search_path, obj, ui)
        if found is not None:
            mapping.file = found

    if not mappings:
        mappings.append(Mapping(id=1))

    if exec_name or build_id:
        first = mappings[0]
        if exec_name:
            first.file = exec_name
        if build_id:
            first.build_id = build_id
    return mappings