"""Interactive shell helpers: shortcuts, assignments and tab completion."""

from __future__ import annotations

import re
from typing import Callable, Collection, Iterable, Mapping

COMMENT_START = "//:"  # Marks a trailing comment on an option value.

_TAIL_DIGITS = re.compile(r"[0-9]+\Z")


class Shortcuts(dict):
    """Composite commands that expand into a sequence of other commands."""

    def expand(self, text: str) -> list[str]:
        """Return the commands a line stands for; unknown lines stand for themselves."""
        text = text.strip()
        if text in self:
            return list(self[text])
        return [text]


PPROF_SHORTCUTS = Shortcuts({
    ":": ["focus=", "ignore=", "hide=", "tagfocus=", "tagignore="],
})


def profile_shortcuts(base: Mapping[str, list[str]] | None,
                      sample_types: Iterable[str]) -> Shortcuts:
    """Return base plus shortcuts selecting each sample type of a profile.

    For a sample type T this adds T, total_T and mean_T. base is not modified.
    """
    shortcuts = Shortcuts({name: list(cmds) for name, cmds in (base or {}).items()})
    for sample_type in sample_types:
        command = f"sample_index={sample_type}"
        shortcuts[sample_type] = [command]
        shortcuts["total_" + sample_type] = ["mean=0", command]
        shortcuts["mean_" + sample_type] = ["mean=1", command]
    return shortcuts


def parse_assignment(text: str) -> tuple[str, str]:
    """Split a name=value line into its trimmed name and value.

    A trailing comment in the value is dropped. Without "=" the value is "".
    """
    name, has_value, value = text.partition("=")
    name = name.strip()
    if not has_value:
        return name, ""
    comment = value.rfind(COMMENT_START)
    if comment != -1:
        value = value[:comment]
    return name, value.strip()


def cat_regex(a: str, b: str) -> str:
    """Join two regular expressions as alternatives, skipping empty ones."""
    if a and b:
        return a + "|" + b
    return a + b


def split_tail_digits(name: str) -> tuple[str, str]:
    """Split trailing digits off an abbreviated command such as top10.

    Returns (name, "") when there are no trailing digits or the name is all digits.
    """
    match = _TAIL_DIGITS.search(name)
    if match is None or match.group() == name:
        return name, ""
    digits = match.group()
    return name[:-len(digits)], digits


def match_name(token: str, names: Iterable[str]) -> str:
    """Return the only name that starts with token (case-insensitive), else ""."""
    token = token.lower()
    found = ""
    for name in names:
        if name.startswith(token):
            if found:
                return ""
            found = name
    return found


def function_completer(substring: str, names: Iterable[str]) -> str:
    """Replace substring with the only function name containing it, if unique."""
    found = ""
    for name in names:
        if substring in name:
            if found:
                return substring
            found = name
    return found or substring


def new_completer(functions: Iterable[str], commands: Collection[str],
                  variables: Collection[str]) -> Callable[[str], str]:
    """Create a completion function over commands, variables and function names.

    commands and variables are read each time the completer runs, so later
    changes to them are seen.
    """
    function_names = list(functions)

    def complete(line: str) -> str:
        tokens = line.split()
        if not tokens:
            return line
        if len(tokens) == 1:
            match = match_name(tokens[0], [*commands, *variables])
            return match or line
        if len(tokens) == 2 and tokens[0] == "help":
            match = match_name(tokens[1], [*commands, *variables])
            return f"help {match}" if match else line
        if tokens[0] in commands and tokens[0] != "tags":
            *head, last = tokens
            if last.startswith("-"):
                last = "-" + function_completer(last[1:], function_names)
            else:
                last = function_completer(last, function_names)
            return " ".join([*head, last])
        return line

    return complete


def group_options(groups: Mapping[str, str | None]) -> dict[str, list[str]]:
    """Map each non-empty group to the sorted names of the options in it.

    groups maps option names to the group each belongs to ("" or None for none).
    """
    result: dict[str, list[str]] = {}
    for name, group in groups.items():
        if group:
            result.setdefault(group, []).append(name)
    for names in result.values():
        names.sort()
    return result