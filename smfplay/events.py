"""Decoded SMF events.

Every event keeps the bytes it was decoded from, status byte first:

  channel  ``[status, data1]`` or ``[status, data1, data2]``
  meta     ``[0xFF, meta_type, *payload]``  (length prefix dropped)
  sysex    ``[0xF0 | 0xF7, *payload]``      (length prefix dropped)

The category is decided once at parse time and stored as ``kind``, so
downstream code branches on :class:`EventKind` rather than re-reading
status nibbles.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

DEFAULT_TEMPO = 500_000  # µs per quarter note (120 BPM)

NOTE_OFF = 0x80
NOTE_ON = 0x90
POLY_AFTERTOUCH = 0xA0
CONTROL_CHANGE = 0xB0
PROGRAM_CHANGE = 0xC0
CHANNEL_PRESSURE = 0xD0
PITCH_BEND = 0xE0

SYSEX = 0xF0
SYSEX_ESCAPE = 0xF7
META = 0xFF

META_SET_TEMPO = 0x51
META_END_OF_TRACK = 0x2F

CC_ALL_NOTES_OFF = 123

# Program Change and Channel Pressure carry one data byte; the rest two.
SINGLE_DATA_BYTE_COMMANDS = frozenset({PROGRAM_CHANGE, CHANNEL_PRESSURE})

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

META_NAMES = {
    0x00: "Sequence Number",
    0x01: "Text Event",
    0x02: "Copyright Notice",
    0x03: "Track Name",
    0x04: "Instrument Name",
    0x05: "Lyric",
    0x06: "Marker",
    0x07: "Cue Point",
    0x20: "MIDI Channel Prefix",
    0x21: "MIDI Port",
    0x2F: "End of Track",
    0x51: "Set Tempo",
    0x54: "SMPTE Offset",
    0x58: "Time Signature",
    0x59: "Key Signature",
    0x7F: "Sequencer Specific",
}

CONTROLLER_NAMES = {
    1: "MOD",
    7: "VOL",
    10: "PAN",
    11: "EXPR",
    64: "SUST",
    123: "ANOF",
}


class EventKind(Enum):
    CHANNEL = "channel"
    META = "meta"
    SYSEX = "sysex"


def data_length_for(status: int) -> int:
    """Number of data bytes following a channel status byte."""
    return 1 if (status & 0xF0) in SINGLE_DATA_BYTE_COMMANDS else 2


@dataclass(frozen=True)
class RawEvent:
    """One decoded event at an absolute tick position."""

    ticks: int
    status: int
    data: bytes  # status byte first, always non-empty
    kind: EventKind
    track: int = 0  # index of the MTrk chunk this came from

    @classmethod
    def channel(
        cls,
        ticks: int,
        status: int,
        data1: int,
        data2: Optional[int] = None,
        *,
        track: int = 0,
    ) -> "RawEvent":
        if not 0x80 <= status <= 0xEF:
            raise ValueError(f"not a channel status byte: 0x{status:02X}")
        body = [status, data1 & 0x7F]
        if data_length_for(status) == 2:
            if data2 is None:
                raise ValueError(f"status 0x{status:02X} needs two data bytes")
            body.append(data2 & 0x7F)
        return cls(ticks=ticks, status=status, data=bytes(body), kind=EventKind.CHANNEL, track=track)

    @classmethod
    def meta(cls, ticks: int, meta_type: int, payload: bytes = b"", *, track: int = 0) -> "RawEvent":
        return cls(
            ticks=ticks,
            status=META,
            data=bytes([META, meta_type & 0xFF]) + bytes(payload),
            kind=EventKind.META,
            track=track,
        )

    @classmethod
    def sysex(cls, ticks: int, status: int, payload: bytes = b"", *, track: int = 0) -> "RawEvent":
        if status not in (SYSEX, SYSEX_ESCAPE):
            raise ValueError(f"not a sysex status byte: 0x{status:02X}")
        return cls(
            ticks=ticks,
            status=status,
            data=bytes([status]) + bytes(payload),
            kind=EventKind.SYSEX,
            track=track,
        )

    @classmethod
    def tempo_change(cls, ticks: int, us_per_quarter: int, *, track: int = 0) -> "RawEvent":
        return cls.meta(ticks, META_SET_TEMPO, us_per_quarter.to_bytes(3, "big"), track=track)

    # -- channel message view ------------------------------------------------

    @property
    def command(self) -> int:
        """High nibble for channel messages, the full status byte otherwise."""
        if self.kind is EventKind.CHANNEL:
            return self.status & 0xF0
        return self.status

    @property
    def channel_number(self) -> Optional[int]:
        if self.kind is not EventKind.CHANNEL:
            return None
        return self.status & 0x0F

    @property
    def data1(self) -> Optional[int]:
        return self.data[1] if len(self.data) > 1 else None

    @property
    def data2(self) -> Optional[int]:
        return self.data[2] if len(self.data) > 2 else None

    @property
    def note(self) -> Optional[int]:
        if self.command in (NOTE_ON, NOTE_OFF, POLY_AFTERTOUCH):
            return self.data[1]
        return None

    @property
    def velocity(self) -> Optional[int]:
        if self.command in (NOTE_ON, NOTE_OFF):
            return self.data[2]
        return None

    @property
    def is_note_on(self) -> bool:
        return self.command == NOTE_ON and self.data[2] > 0

    @property
    def is_note_off(self) -> bool:
        return self.command == NOTE_OFF or (self.command == NOTE_ON and self.data[2] == 0)

    # -- meta / sysex view ---------------------------------------------------

    @property
    def meta_type(self) -> Optional[int]:
        if self.kind is not EventKind.META or len(self.data) < 2:
            return None
        return self.data[1]

    @property
    def payload(self) -> bytes:
        if self.kind is EventKind.META:
            return self.data[2:]
        return self.data[1:]

    @property
    def tempo(self) -> Optional[int]:
        """Microseconds per quarter note for a Set Tempo event."""
        if self.meta_type != META_SET_TEMPO or len(self.data) < 5:
            return None
        return (self.data[2] << 16) | (self.data[3] << 8) | self.data[4]

    def hex(self) -> str:
        return self.data.hex(" ").upper()


def note_name(number: int) -> str:
    """MIDI note number to name, 60 -> ``C4``."""
    return f"{NOTE_NAMES[number % 12]}{number // 12 - 1}"


def controller_name(number: int) -> str:
    return CONTROLLER_NAMES.get(number, f"CC{number:02d}")


def _meta_text(payload: bytes) -> str:
    return payload.decode("latin-1").rstrip("\x00")


def describe_meta(event: RawEvent) -> str:
    meta_type = event.meta_type
    if meta_type is None:
        return "Invalid Meta Event"
    name = META_NAMES.get(meta_type, f"Meta Event {meta_type:02X}")
    payload = event.payload
    if meta_type == META_SET_TEMPO and event.tempo:
        return f"{name} {60_000_000 / event.tempo:.1f} BPM ({event.tempo} us/quarter)"
    if 0x01 <= meta_type <= 0x07 and payload:
        return f"{name} {_meta_text(payload)!r}"
    if meta_type == 0x58 and len(payload) >= 2:
        return f"{name} {payload[0]}/{2 ** payload[1]}"
    if meta_type == 0x59 and len(payload) >= 2:
        sharps = payload[0] - 256 if payload[0] > 127 else payload[0]
        mode = "minor" if payload[1] else "major"
        return f"{name} {sharps:+d} {mode}"
    return name


def describe(event: RawEvent) -> str:
    """One-line human-readable description of ``event``."""
    if event.kind is EventKind.META:
        return describe_meta(event)
    if event.kind is EventKind.SYSEX:
        return f"SysEx {len(event.payload)} bytes"

    ch = event.channel_number + 1
    command = event.command
    d1 = event.data[1]
    d2 = event.data[2] if len(event.data) > 2 else 0
    if command == NOTE_ON and d2 > 0:
        return f"Note On - CH {ch}, {note_name(d1)} ({d1}), VEL {d2}"
    if command in (NOTE_ON, NOTE_OFF):
        return f"Note Off - CH {ch}, {note_name(d1)} ({d1}), VEL {d2}"
    if command == POLY_AFTERTOUCH:
        return f"Aftertouch - CH {ch}, NOTE {d1}, Pressure {d2}"
    if command == CONTROL_CHANGE:
        return f"Control Change - CH {ch}, {controller_name(d1)}, Val {d2}"
    if command == PROGRAM_CHANGE:
        return f"Program Change - CH {ch}, Program {d1}"
    if command == CHANNEL_PRESSURE:
        return f"Channel Pressure - CH {ch}, Pressure {d1}"
    return f"Pitch Bend - CH {ch}, Value {(d2 << 7) | d1}"
