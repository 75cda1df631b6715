"""Standard MIDI File decoder.

File layout::

  "MThd" u32 length  u16 format  u16 ntrks  u16 division  [extra header bytes]
  "MTrk" u32 length  <delta VLQ> <event> <delta VLQ> <event> ...
  ...

Every event is preceded by a delta time in ticks.  Channel messages may
omit their status byte when it repeats the previous one (running status);
meta (0xFF) and sysex (0xF0/0xF7) events carry a VLQ payload length and
cancel running status.

``decode`` returns one list per track with absolute tick positions;
``merge`` interleaves them into one stream ordered by tick.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .errors import FormatError, TruncatedDataError, UnsupportedFormatError
from .events import (
    META,
    SYSEX,
    SYSEX_ESCAPE,
    EventKind,
    RawEvent,
    data_length_for,
)
from .reader import ByteCursor
from .tempo import TempoChange, TempoTimeline, build_tempo_map

log = logging.getLogger(__name__)

HEADER_TAG = b"MThd"
TRACK_TAG = b"MTrk"
MIN_HEADER_LENGTH = 6
CHUNK_HEADER_SIZE = 8


@dataclass(frozen=True)
class SMFHeader:
    length: int
    format: int
    track_count: int
    division: int

    @classmethod
    def read(cls, cursor: ByteCursor) -> "SMFHeader":
        if cursor.remaining < 4 or cursor.read_bytes(4) != HEADER_TAG:
            raise FormatError("not a Standard MIDI File: missing 'MThd' header tag")
        length = cursor.read_u32()
        if length < MIN_HEADER_LENGTH:
            raise FormatError(f"header chunk too short ({length} bytes, need {MIN_HEADER_LENGTH})")
        body_end = cursor.offset + length
        fmt = cursor.read_u16()
        track_count = cursor.read_u16()
        division = cursor.read_u16()
        # Later revisions may extend the header; skip what we do not know.
        cursor.seek(min(body_end, cursor.end))
        return cls(length=length, format=fmt, track_count=track_count, division=division)

    @classmethod
    def from_bytes(cls, data: bytes) -> "SMFHeader":
        return cls.read(ByteCursor(data))

    @property
    def is_smpte(self) -> bool:
        return bool(self.division & 0x8000)

    @property
    def ticks_per_quarter(self) -> int:
        if self.is_smpte:
            frames = 256 - (self.division >> 8)
            raise UnsupportedFormatError(
                f"SMPTE time division ({frames} fps, {self.division & 0xFF} ticks/frame) is not supported"
            )
        if self.division == 0:
            raise FormatError("time division is zero")
        return self.division


def _read_track(cursor: ByteCursor, track: int) -> List[RawEvent]:
    events: List[RawEvent] = []
    ticks = 0
    running_status: Optional[int] = None

    while not cursor.at_end():
        ticks += cursor.read_vlq()

        status = cursor.read_u8()
        if status < 0x80:
            if running_status is None:
                raise UnsupportedFormatError(
                    f"track {track}: data byte 0x{status:02X} at 0x{cursor.offset - 1:X} "
                    "with no running status"
                )
            cursor.rewind()
            status = running_status
        elif status < 0xF0:
            running_status = status
        else:
            running_status = None

        if status < 0xF0:
            body = cursor.read_bytes(data_length_for(status))
            for byte in body:
                if byte >= 0x80:
                    raise UnsupportedFormatError(
                        f"track {track}: status byte 0x{byte:02X} inside channel message "
                        f"0x{status:02X} at 0x{cursor.offset - len(body):X}"
                    )
            events.append(
                RawEvent(ticks=ticks, status=status, data=bytes([status]) + body,
                         kind=EventKind.CHANNEL, track=track)
            )
        elif status == META:
            meta_type = cursor.read_u8()
            length = cursor.read_vlq()
            events.append(RawEvent.meta(ticks, meta_type, cursor.read_bytes(length), track=track))
        elif status in (SYSEX, SYSEX_ESCAPE):
            length = cursor.read_vlq()
            events.append(RawEvent.sysex(ticks, status, cursor.read_bytes(length), track=track))
        else:
            raise UnsupportedFormatError(
                f"track {track}: undefined status byte 0x{status:02X} at 0x{cursor.offset - 1:X}"
            )

    return events


def decode_with_header(data: bytes) -> Tuple[SMFHeader, List[List[RawEvent]]]:
    cursor = ByteCursor(data)
    header = SMFHeader.read(cursor)
    tpq = header.ticks_per_quarter
    log.debug(
        "MIDI header: format %d, %d tracks, division %d PPQ",
        header.format, header.track_count, tpq,
    )

    tracks: List[List[RawEvent]] = []
    for index in range(header.track_count):
        if cursor.remaining < CHUNK_HEADER_SIZE:
            log.warning(
                "file ends after %d of %d declared tracks", index, header.track_count
            )
            break
        tag = cursor.read_bytes(4)
        if tag != TRACK_TAG:
            log.warning(
                "chunk %r at 0x%X where track %d was expected; stopping track scan",
                tag, cursor.offset - 4, index,
            )
            break
        length = cursor.read_u32()
        track_end = cursor.offset + length
        if track_end > len(data):
            raise TruncatedDataError(
                f"track {index} declares {length} bytes but only "
                f"{len(data) - cursor.offset} remain",
                offset=cursor.offset,
            )
        events = _read_track(cursor.limit(track_end), index)
        log.debug("track %d: %d events", index, len(events))
        tracks.append(events)
        cursor.seek(track_end)

    return header, tracks


def decode(data: bytes) -> Tuple[List[List[RawEvent]], int]:
    """Decode ``data`` into per-track event lists and ticks per quarter note.

    Raises
    ------
    FormatError
        The buffer does not begin with ``MThd`` or the header is malformed.
    UnsupportedFormatError
        SMPTE division, or a status byte with no defined handling.
    TruncatedDataError
        An event runs past the end of its track chunk or of the buffer.
    """
    header, tracks = decode_with_header(data)
    return tracks, header.ticks_per_quarter


def merge(tracks: Sequence[Sequence[RawEvent]]) -> List[RawEvent]:
    """Interleave per-track events into one stream ordered by tick.

    ``sorted`` is stable, so events sharing a tick keep track order and
    then their order within the track.
    """
    combined = [event for events in tracks for event in events]
    return sorted(combined, key=lambda event: event.ticks)


@dataclass
class Song:
    """Everything the player needs, decoded once from a file."""

    header: SMFHeader
    tracks: List[List[RawEvent]]
    events: List[RawEvent]
    tempo_map: List[TempoChange]
    ticks_per_quarter: int
    timeline: TempoTimeline = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.timeline = TempoTimeline(self.tempo_map, self.ticks_per_quarter)

    @property
    def duration(self) -> float:
        """Seconds from the start to the last event."""
        if not self.events:
            return 0.0
        return self.timeline.elapsed(self.events[-1].ticks)


def load_smf(data: bytes) -> Song:
    header, tracks = decode_with_header(data)
    events = merge(tracks)
    tempo_map = build_tempo_map(events)
    return Song(
        header=header,
        tracks=tracks,
        events=events,
        tempo_map=tempo_map,
        ticks_per_quarter=header.ticks_per_quarter,
    )
