"""Locating, downloading and opening profile sources."""

from __future__ import annotations

import os
import re
import subprocess
import tempfile
import urllib.error
import urllib.request
from typing import Any, BinaryIO, Iterable, Mapping as MappingType
from urllib.parse import parse_qsl, quote_plus, urlsplit, urlunsplit

from profkit.mappings import home_env
from profkit.tempfiles import defer_delete_temp_file, new_temp_file

_PERF_HEADER = b"PERFILE2"
_DEFAULT_TIMEOUT = 60
_EXTRA_HTTP_TIMEOUT = 5
_INT32 = re.compile(r"[+-]?[0-9]+")
_INT32_MIN = -(1 << 31)
_INT32_MAX = (1 << 31) - 1


class FetchError(Exception):
    """Raised when a profile cannot be retrieved or prepared."""


def set_tmp_dir(ui: Any) -> str:
    """Pick and create the directory where remotely fetched profiles are saved.

    Tries PPROF_TMPDIR, then $HOME/pprof, then the system temporary directory.
    """
    candidates: list[str] = []
    profile_dir = os.environ.get("PPROF_TMPDIR", "")
    if profile_dir:
        candidates.append(profile_dir)
    home_dir = os.environ.get(home_env(), "")
    if home_dir:
        candidates.append(os.path.join(home_dir, "pprof"))
    candidates.append(tempfile.gettempdir())

    for directory in candidates:
        try:
            os.makedirs(directory, mode=0o755, exist_ok=True)
        except OSError as exc:
            ui.print_err("Could not use temp dir ", directory, ": ", str(exc))
            continue
        return directory
    raise FetchError("failed to identify temp dir")


def _has_control_chars(text: str) -> bool:
    return any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in text)


def _parse_url(text: str):
    """Split a URL, rejecting the forms that are not valid URLs."""
    if _has_control_chars(text):
        raise ValueError("invalid control character in URL")
    parts = urlsplit(text)
    if not parts.scheme and not parts.netloc:
        first_segment = parts.path.split("/", 1)[0]
        if ":" in first_segment:
            raise ValueError("first path segment in URL cannot contain colon")
    parts.port  # raises ValueError for a malformed port
    return parts


def _host(parts) -> str:
    return parts.netloc.rpartition("@")[2]


def _parse_int32(text: str) -> int | None:
    if not _INT32.fullmatch(text):
        return None
    value = int(text)
    if not _INT32_MIN <= value <= _INT32_MAX:
        return None
    return value


def _encode_query(values: dict[str, list[str]]) -> str:
    return "&".join(
        f"{quote_plus(key)}={quote_plus(value)}"
        for key in sorted(values)
        for value in values[key]
    )


def adjust_url(source: str, duration: float, timeout: float) -> tuple[str, float]:
    """Return a cleaned-up URL for source and the timeout to fetch it with.

    duration and timeout are in seconds. If source is not recognised as a
    URL the result is ("", 0).
    """
    try:
        parts = _parse_url(source)
        failed = False
    except ValueError:
        parts = None
        failed = True
    if failed or (not _host(parts) and parts.scheme and parts.scheme != "file"):
        # Sources such as hostname:port/path parse with the hostname as scheme.
        try:
            parts = _parse_url("http://" + source)
            failed = False
        except ValueError:
            failed = True
    if failed or not _host(parts):
        return "", 0

    values: dict[str, list[str]] = {}
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        values.setdefault(key, []).append(value)

    if duration > 0:
        values["seconds"] = [str(int(duration))]
    else:
        url_seconds = values.get("seconds", [""])[0]
        if url_seconds:
            parsed = _parse_int32(url_seconds)
            if parsed is not None:
                duration = parsed

    if timeout <= 0:
        timeout = duration + duration / 2 if duration > 0 else _DEFAULT_TIMEOUT

    url = urlunsplit(
        (parts.scheme, parts.netloc, parts.path, _encode_query(values), parts.fragment)
    )
    return url, timeout


def _header(headers: Any, name: str) -> str:
    if headers is None:
        return ""
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return str(value)
    return ""


def status_code_error(status: int, reason: str, headers: MappingType[str, str] | Any,
                      body: bytes | str | None) -> FetchError:
    """Build the error for an HTTP response other than 200 OK.

    The body is included when the response comes from a profiling endpoint
    that reports its errors as plain text.
    """
    status_text = f"{status} {reason}" if reason else str(status)
    if (_header(headers, "X-Go-Pprof")
            and "text/plain" in _header(headers, "Content-Type")
            and body is not None):
        if isinstance(body, bytes):
            body = body.decode("utf-8", "replace")
        return FetchError(f"server response: {status_text} - {body}")
    return FetchError(f"server response: {status_text}")


def fetch_url(source: str, timeout: float) -> BinaryIO:
    """Open source over HTTP and return the response body as a stream."""
    try:
        response = urllib.request.urlopen(source, timeout=timeout + _EXTRA_HTTP_TIMEOUT)
    except urllib.error.HTTPError as exc:
        with exc:
            body = exc.read()
        raise status_code_error(exc.code, exc.reason, exc.headers, body) from None
    except (urllib.error.URLError, OSError, ValueError) as exc:
        raise FetchError(f"http fetch: {exc}") from exc
    if response.status != 200:
        with response:
            body = response.read()
        raise status_code_error(response.status, response.reason, response.headers, body)
    return response


def is_perf_file(path: str | os.PathLike) -> bool:
    """Report whether the file begins with the perf.data header."""
    try:
        with open(path, "rb") as handle:
            header = handle.read(len(_PERF_HEADER))
    except OSError:
        return False
    return header == _PERF_HEADER


def convert_perf_data(perf_path: str, ui: Any) -> BinaryIO:
    """Convert a perf.data file with perf_to_profile and open the result.

    The converted file is registered for deferred deletion.
    """
    ui.print(f"Converting {perf_path} to a profile.proto... (May take a few minutes)")
    handle = new_temp_file(tempfile.gettempdir(), "pprof_", ".pb.gz")
    name = handle.name
    handle.close()
    defer_delete_temp_file(name)
    try:
        subprocess.run(["perf_to_profile", "-i", perf_path, "-o", name, "-f"], check=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        raise FetchError(
            f"failed to convert perf.data file; is perf_to_profile installed? {exc}"
        ) from exc
    return open(name, "rb")


def _format_duration(seconds: float) -> str:
    if seconds == 0:
        return "0s"
    sign = "-" if seconds < 0 else ""
    total = abs(float(seconds))
    if total < 1:
        return f"{sign}{total * 1000:g}ms"
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    secs_text = f"{secs:.9f}".rstrip("0").rstrip(".") + "s"
    if hours:
        return f"{sign}{int(hours)}h{int(minutes)}m{secs_text}"
    if minutes:
        return f"{sign}{int(minutes)}m{secs_text}"
    return sign + secs_text


def open_profile_source(source: str, duration: float, timeout: float,
                        ui: Any) -> tuple[BinaryIO, str]:
    """Open a profile from a URL, a perf.data file or a plain file.

    Returns the stream and, for remote sources, the URL it was fetched from
    (an empty string otherwise).
    """
    source_url, url_timeout = adjust_url(source, duration, timeout)
    if source_url:
        ui.print("Fetching profile over HTTP from " + source_url)
        if duration > 0:
            ui.print(f"Please wait... ({_format_duration(duration)})")
        return fetch_url(source_url, url_timeout), source_url
    if is_perf_file(source):
        return convert_perf_data(source, ui), ""
    return open(source, "rb"), ""


def saved_profile_prefix(mapping_file: str, sample_types: Iterable[str]) -> str:
    """File name prefix for a saved copy of a fetched profile."""
    prefix = "pprof."
    if mapping_file:
        prefix += os.path.basename(mapping_file.rstrip("/")) + "."
    for sample_type in sample_types:
        prefix += sample_type + "."
    return prefix