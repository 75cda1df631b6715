"""Fetch SMF bytes from a local path or an http(s) URL."""

from __future__ import annotations

import logging
import socket
import urllib.error
import urllib.request
from pathlib import Path
from urllib.parse import urlparse

from .errors import SourceError

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def is_url(location: str) -> bool:
    return urlparse(location).scheme in ("http", "https")


def clean_location(location: str) -> str:
    """Strip whitespace and surrounding quotes (pasted Windows paths)."""
    return location.strip().strip('"').strip("'").strip()


def download(url: str, timeout: float = DEFAULT_TIMEOUT) -> bytes:
    log.info("downloading %s", url)
    try:
        with urllib.request.urlopen(url, timeout=timeout) as response:
            data = response.read()
    except urllib.error.HTTPError as exc:
        raise SourceError(f"HTTP {exc.code} fetching {url}") from exc
    except urllib.error.URLError as exc:
        raise SourceError(f"network error fetching {url}: {exc.reason}") from exc
    except (TimeoutError, socket.timeout) as exc:
        raise SourceError(f"timed out after {timeout:g}s fetching {url}") from exc
    except OSError as exc:
        raise SourceError(f"error reading {url}: {exc}") from exc
    log.info("downloaded %d bytes", len(data))
    return data


def read_source(location: str, timeout: float = DEFAULT_TIMEOUT) -> bytes:
    """Bytes for ``location``; no retries."""
    location = clean_location(location)
    if not location:
        raise SourceError("no MIDI file path or URL given")
    if is_url(location):
        return download(location, timeout)

    path = Path(location).expanduser()
    if not path.is_file():
        raise SourceError(f"MIDI file not found: {path}")
    try:
        return path.read_bytes()
    except OSError as exc:
        raise SourceError(f"cannot read {path}: {exc}") from exc
