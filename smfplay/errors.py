"""Exception types raised while decoding and playing Standard MIDI Files."""

from __future__ import annotations

from typing import Optional


class SMFError(Exception):
    """Base class for everything that makes a byte stream unplayable."""


class FormatError(SMFError, ValueError):
    """Missing or invalid chunk tag, or a header that cannot be framed."""


class UnsupportedFormatError(SMFError):
    """Valid-looking input that uses something we refuse to guess at.

    Raised for SMPTE time division and for status bytes with no defined
    handling inside a track chunk.
    """


class TruncatedDataError(SMFError):
    """A read ran past the end of the buffer or the current chunk."""

    def __init__(self, message: str, *, offset: Optional[int] = None) -> None:
        super().__init__(message)
        self.offset = offset


class PlaybackCancelled(Exception):
    """Playback stopped cooperatively before the last event was sent.

    Also importable as ``CancelledError``.  Not a decode failure.
    """

    def __init__(self, dispatched: int) -> None:
        super().__init__(f"playback cancelled after {dispatched} events")
        self.dispatched = dispatched


CancelledError = PlaybackCancelled


class SourceError(Exception):
    """The input provider could not produce the file bytes."""


class ConfigError(ValueError):
    """Invalid player configuration."""
