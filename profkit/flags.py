"""Command-line flag definitions and parsing with single-dash flag syntax."""

from __future__ import annotations

import re
import sys
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable

_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})
_OCTAL = re.compile(r"[+-]?0[0-7]+")
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_HELP_NAMES = frozenset({"h", "help"})


class FlagError(ValueError):
    """Raised when flags are defined twice or the command line is malformed."""


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"invalid syntax: {text!r}")


def _parse_int(text: str) -> int:
    if text != text.strip():
        raise ValueError(f"invalid syntax: {text!r}")
    value = int(text, 8) if _OCTAL.fullmatch(text) else int(text, 0)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"value out of range: {text!r}")
    return value


def _parse_float(text: str) -> float:
    if text != text.strip():
        raise ValueError(f"invalid syntax: {text!r}")
    return float(text)


class _Kind(Enum):
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    STRING_LIST = "string_list"


_PARSERS: dict[_Kind, Callable[[str], Any]] = {
    _Kind.BOOL: _parse_bool,
    _Kind.INT: _parse_int,
    _Kind.FLOAT: _parse_float,
    _Kind.STRING: str,
    _Kind.STRING_LIST: str,
}


@dataclass
class _Flag:
    name: str
    kind: _Kind
    default: Any
    usage: str
    value: Any


class FlagSet:
    """A set of named flags parsed from the front of an argument list."""

    def __init__(self) -> None:
        self._flags: dict[str, _Flag] = {}
        self._usage_messages: list[str] = []

    def _define(self, name: str, kind: _Kind, default: Any, usage: str) -> None:
        if name in self._flags:
            raise FlagError(f"flag redefined: {name}")
        self._flags[name] = _Flag(name, kind, default, usage, default)

    def add_bool(self, name: str, default: bool, usage: str) -> None:
        """Define a boolean flag."""
        self._define(name, _Kind.BOOL, bool(default), usage)

    def add_int(self, name: str, default: int, usage: str) -> None:
        """Define an integer flag."""
        self._define(name, _Kind.INT, int(default), usage)

    def add_float(self, name: str, default: float, usage: str) -> None:
        """Define a floating-point flag."""
        self._define(name, _Kind.FLOAT, float(default), usage)

    def add_string(self, name: str, default: str, usage: str) -> None:
        """Define a string flag."""
        self._define(name, _Kind.STRING, str(default), usage)

    def add_string_list(self, name: str, default: str, usage: str) -> None:
        """Define a flag whose value is read back as a one-element list."""
        self._define(name, _Kind.STRING_LIST, str(default), usage)

    def extra_usage(self) -> str:
        """Return the additional usage messages, one per line."""
        return "\n".join(self._usage_messages)

    def add_extra_usage(self, text: str) -> None:
        """Append a message to the additional usage text."""
        self._usage_messages.append(text)

    def get(self, name: str) -> Any:
        """Return the current value of a flag."""
        try:
            flag = self._flags[name]
        except KeyError:
            raise KeyError(f"flag not defined: {name}") from None
        if flag.kind is _Kind.STRING_LIST:
            return [flag.value]
        return flag.value

    def parse(self, usage: Callable[[], Any], argv: Iterable[str] | None = None) -> list[str]:
        """Parse leading flags from argv and return the remaining arguments.

        usage is called when the command line is malformed (before FlagError
        is raised) and when no arguments remain after the flags.
        """
        args = deque(sys.argv[1:] if argv is None else argv)
        try:
            self._parse_args(args)
        except FlagError:
            usage()
            raise
        rest = list(args)
        if not rest:
            usage()
        return rest

    def _parse_args(self, args: deque[str]) -> None:
        while args:
            arg = args[0]
            if len(arg) < 2 or not arg.startswith("-"):
                return
            args.popleft()
            if arg == "--":
                return
            body = arg[2:] if arg.startswith("--") else arg[1:]
            if not body or body[0] in "-=":
                raise FlagError(f"bad flag syntax: {arg}")
            name, has_value, value = body.partition("=")
            flag = self._flags.get(name)
            if flag is None:
                if name in _HELP_NAMES:
                    raise FlagError("flag: help requested")
                raise FlagError(f"flag provided but not defined: -{name}")
            if not has_value:
                if flag.kind is _Kind.BOOL:
                    value = "true"
                elif args:
                    value = args.popleft()
                else:
                    raise FlagError(f"flag needs an argument: -{name}")
            try:
                flag.value = _PARSERS[flag.kind](value)
            except ValueError as exc:
                raise FlagError(f'invalid value "{value}" for flag -{name}: {exc}') from exc