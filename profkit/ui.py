"""Console user interface, an error-capturing wrapper and output files."""

from __future__ import annotations

import sys
from typing import Any, BinaryIO, Callable, TextIO


def _format(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _sprint(args: tuple) -> str:
    """Concatenate values, adding a space between two adjacent non-strings."""
    parts: list[str] = []
    previous: Any = ""
    for position, value in enumerate(args):
        if position and not isinstance(previous, str) and not isinstance(value, str):
            parts.append(" ")
        parts.append(_format(value))
        previous = value
    return "".join(parts)


def _sprintln(args: tuple) -> str:
    return " ".join(_format(value) for value in args) + "\n"


class StdUI:
    """Reads commands from an input stream and writes messages to stderr."""

    def __init__(self, reader: TextIO | None = None, out: TextIO | None = None,
                 err: TextIO | None = None) -> None:
        self._reader = reader
        self._out = out
        self._err = err
        self.completer: Callable[[str], str] | None = None

    @property
    def _input(self) -> TextIO:
        return self._reader if self._reader is not None else sys.stdin

    @property
    def _stdout(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    @property
    def _stderr(self) -> TextIO:
        return self._err if self._err is not None else sys.stderr

    def read_line(self, prompt: str) -> str:
        """Show the prompt and return the next line; raise EOFError at end of input."""
        self._stdout.write(prompt)
        self._stdout.flush()
        line = self._input.readline()
        if line == "":
            raise EOFError("end of input")
        return line

    def print(self, *args: Any) -> None:
        """Write an informational message."""
        self._write(args)

    def print_err(self, *args: Any) -> None:
        """Write an error message."""
        self._write(args)

    def is_terminal(self) -> bool:
        """Report whether output goes to an interactive terminal."""
        return False

    def want_browser(self) -> bool:
        """Report whether a browser should be opened for web views."""
        return True

    def set_auto_complete(self, completer: Callable[[str], str]) -> None:
        """Remember the completion function; plain streams never invoke it."""
        self.completer = completer

    def _write(self, args: tuple) -> None:
        text = _sprint(args)
        if not text.endswith("\n"):
            text += "\n"
        self._stderr.write(text)


class ErrorCatcher:
    """Wraps a UI, remembering every error message it passes on."""

    def __init__(self, ui: Any) -> None:
        self.ui = ui
        self.errors: list[str] = []

    def print(self, *args: Any) -> None:
        """Forward an informational message to the wrapped UI."""
        self.ui.print(*args)

    def print_err(self, *args: Any) -> None:
        """Record an error message and forward it to the wrapped UI."""
        self.errors.append(_sprintln(args).removesuffix("\n"))
        self.ui.print_err(*args)

    def __getattr__(self, name: str) -> Any:
        if name == "ui":
            raise AttributeError(name)
        return getattr(self.ui, name)


def open_output(name: str) -> BinaryIO:
    """Create (or truncate) a file for writing report output."""
    return open(name, "wb")