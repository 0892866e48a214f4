"""Flame graph trees built from a call graph, serialised for the web view."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Iterable

_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _percentage(value: int, total: int) -> str:
    ratio = abs(value / total) * 100 if total else 0.0
    if 99.95 <= ratio <= 100.05:
        return "  100%"
    if ratio >= 1.0:
        return "%5.2f%%" % ratio
    return "%5.2g%%" % ratio


@dataclass
class TreeNode:
    """A node of the flame graph: a function and the nodes it calls."""

    name: str
    full_name: str
    cum: int
    cum_format: str
    percent: str
    children: list[TreeNode] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the node with the short keys the flame graph script reads."""
        return {
            "n": self.name,
            "f": self.full_name,
            "v": self.cum,
            "l": self.cum_format,
            "p": self.percent,
            "c": None if self.children is None else [c.to_dict() for c in self.children],
        }

    def to_json(self) -> str:
        """Serialise compactly, with HTML-sensitive characters escaped."""
        text = json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))
        for char, escape in _JSON_ESCAPES.items():
            text = text.replace(char, escape)
        return text


def build_flame_tree(nodes: Iterable[tuple[str, int]], edges: Iterable[tuple[int, int]],
                     total: int, format_value: Callable[[int], str],
                     shorten: Callable[[str], str] | None = None) -> TreeNode:
    """Build a flame graph under a synthetic "root" node.

    nodes holds (full name, cumulative value) pairs; edges holds
    (caller index, callee index) pairs. Nodes without callers become the
    children of the root, in their original order.
    """

    def make(name: str, full_name: str, value: int) -> TreeNode:
        return TreeNode(name, full_name, value, format_value(value),
                        _percentage(value, total).strip())

    tree = [
        make(shorten(full_name) if shorten is not None else full_name, full_name, cum)
        for full_name, cum in nodes
    ]

    linked: set[tuple[int, int]] = set()
    for parent, child in edges:
        for index in (parent, child):
            if not 0 <= index < len(tree):
                raise IndexError(f"edge refers to unknown node {index}")
        if (parent, child) in linked:
            continue
        linked.add((parent, child))
        parent_node = tree[parent]
        if parent_node.children is None:
            parent_node.children = []
        parent_node.children.append(tree[child])

    called = {child for _, child in linked}
    roots = [node for index, node in enumerate(tree) if index not in called]
    root_value = sum(node.cum for node in roots)
    root = make("root", "root", root_value)
    root.children = roots
    return root