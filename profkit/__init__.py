"""Helpers for fetching, locating and presenting performance profiles."""

__version__ = "0.1.0"
__all__ = [
    "completion",
    "elfexec",
    "fetch",
    "flags",
    "flamegraph",
    "mappings",
    "svg",
    "tempfiles",
    "ui",
    "web",
]