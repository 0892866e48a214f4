"""Helpers for serving the browser interface: addresses, URLs and SVG rendering."""

from __future__ import annotations

import re
import socket
import subprocess
import sys
from typing import Iterable, Mapping
from urllib.parse import parse_qsl, quote, quote_plus, urlsplit, urlunsplit

_LOCAL_HOSTS = ("localhost", "127.0.0.1", "[::1]", "::1")
_PORT_NUMBER = re.compile(r"[+-]?[0-9]+")
_PATH_SAFE = "/:@!$&'()*+,;=-._~"

# Query parameter used by the web view for each option it carries over.
_BROWSER_PARAMS = (
    ("f", "focus"),
    ("s", "show"),
    ("sf", "show_from"),
    ("i", "ignore"),
    ("h", "hide"),
    ("si", "sample_index"),
)


def split_host_port(hostport: str) -> tuple[str, str]:
    """Split "host:port" or "[host]:port" into host and port.

    The port may be empty; a missing port separator raises ValueError.
    """
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise ValueError(f"address {hostport}: missing ']' in address")
        rest = hostport[end + 1:]
        if not rest:
            raise ValueError(f"address {hostport}: missing port in address")
        if not rest.startswith(":"):
            raise ValueError(f"address {hostport}: unexpected characters after ']'")
        host, port = hostport[1:end], rest[1:]
        if "[" in host:
            raise ValueError(f"address {hostport}: unexpected '[' in address")
    else:
        colon = hostport.rfind(":")
        if colon < 0:
            raise ValueError(f"address {hostport}: missing port in address")
        host, port = hostport[:colon], hostport[colon + 1:]
        if ":" in host:
            raise ValueError(f"address {hostport}: too many colons in address")
        if "[" in host:
            raise ValueError(f"address {hostport}: unexpected '[' in address")
        if "]" in host:
            raise ValueError(f"address {hostport}: unexpected ']' in address")
    if "[" in port:
        raise ValueError(f"address {hostport}: unexpected '[' in address")
    if "]" in port:
        raise ValueError(f"address {hostport}: unexpected ']' in address")
    return host, port


def join_host_port(host: str, port: int | str) -> str:
    """Combine host and port, bracketing hosts that contain a colon."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _random_port(host: str) -> int:
    infos = socket.getaddrinfo(host, 0, type=socket.SOCK_STREAM)
    family, kind, proto, _, address = infos[0]
    with socket.socket(family, kind, proto) as listener:
        listener.bind(address)
        return listener.getsockname()[1]


def get_host_and_port(hostport: str) -> tuple[str, int]:
    """Resolve an HTTP listen address into a host and a port.

    An empty host means localhost; an empty port picks a free one.
    """
    try:
        host, port_text = split_host_port(hostport)
    except ValueError as exc:
        raise ValueError(f"could not split http address: {exc}") from exc
    if not host:
        host = "localhost"
    if not port_text:
        try:
            port = _random_port(host)
        except OSError as exc:
            raise ValueError(f"could not generate random port: {exc}") from exc
    else:
        if not _PORT_NUMBER.fullmatch(port_text):
            raise ValueError(f"invalid port number: {port_text!r}")
        port = int(port_text)
    return host, port


def is_localhost(host: str) -> bool:
    """Report whether host names the local machine."""
    return host in _LOCAL_HOSTS


def get_from_legend(legend: Iterable[str], param: str, default: str) -> str:
    """Return the rest of the first legend entry starting with param, else default."""
    for entry in legend:
        if entry.startswith(param):
            return entry[len(param):]
    return default


def redirect_target(path: str, query: str) -> str:
    """Build the location to redirect to, keeping the original query string."""
    target = quote(path, safe=_PATH_SAFE)
    first_segment = target.split("/", 1)[0]
    if ":" in first_segment:
        target = "./" + target
    if query:
        target += "?" + query
    return target


def browser_url(url: str, values: Mapping[str, str]) -> str:
    """Add the web view's query parameters for the given option values to url.

    values maps option names (focus, show, show_from, ignore, hide,
    sample_index) to their values; empty or missing options are left out.
    """
    parts = urlsplit(url)
    query: dict[str, list[str]] = {}
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        query.setdefault(key, []).append(value)
    for param, option in _BROWSER_PARAMS:
        value = values.get(option, "")
        if value:
            query[param] = [value]
    encoded = "&".join(
        f"{quote_plus(key)}={quote_plus(value)}"
        for key in sorted(query)
        for value in query[key]
    )
    return urlunsplit((parts.scheme, parts.netloc, parts.path, encoded, parts.fragment))


def dot_to_svg(dot: bytes | str) -> bytes:
    """Render a dot graph to SVG with Graphviz, ready for embedding in a page.

    Raises OSError when dot cannot be run and CalledProcessError when it fails.
    """
    if isinstance(dot, str):
        dot = dot.encode("utf-8")
    completed = subprocess.run(
        ["dot", "-Tsvg"], input=dot, stdout=subprocess.PIPE, stderr=sys.stderr,
        check=True,
    )
    # dot sometimes leaves ampersands unquoted.
    svg = completed.stdout.replace(b"&;", b"&amp;;")
    start = svg.find(b"<svg")
    if start >= 0:
        svg = svg[start:]
    return svg