"""Plain-text event trace.

One line per dispatched event, e.g.::

  [00:00:01.250] NOTE_ON  C4   CH01 VEL:0x64 ███████░░░ | ACTV: 0x01 | NOTE: 0x3C
  [00:00:01.500] NOTE_OFF C4   CH01 VEL:0x00 ░░░░░░░░░░ | ACTV: 0x00 | NOTE: 0x3C
  [00:00:02.000] META     Set Tempo 100.0 BPM (600000 us/quarter)
"""

from __future__ import annotations

import datetime as _dt
import sys
import threading
from typing import Optional, TextIO

from .events import (
    CHANNEL_PRESSURE,
    CONTROL_CHANGE,
    PITCH_BEND,
    POLY_AFTERTOUCH,
    PROGRAM_CHANGE,
    EventKind,
    RawEvent,
    controller_name,
    describe,
    note_name,
)

BAR_WIDTH = 10


def format_timestamp(seconds: float) -> str:
    """``HH:MM:SS.mmm`` for an offset in seconds."""
    millis = int(round(max(seconds, 0.0) * 1000))
    hours, millis = divmod(millis, 3_600_000)
    minutes, millis = divmod(millis, 60_000)
    secs, millis = divmod(millis, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"


def velocity_bar(value: int, width: int = BAR_WIDTH) -> str:
    filled = int(value / 127 * width)
    return "█" * filled + "░" * (width - filled)


def format_message(tag: str, message: str, now: Optional[_dt.datetime] = None) -> str:
    """Status line in the trace layout: ``[12:00:00.000] [TAG  ] message``."""
    now = now or _dt.datetime.now()
    stamp = now.strftime("%H:%M:%S.") + f"{now.microsecond // 1000:03d}"
    return f"[{stamp}] [{tag:<5}] {message}"


def format_event(event: RawEvent, offset: float, active_notes: int) -> str:
    stamp = f"[{format_timestamp(offset)}]"

    if event.kind is EventKind.META:
        return f"{stamp} META     {describe(event)}"
    if event.kind is EventKind.SYSEX:
        return f"{stamp} SYSEX    {describe(event)} [{event.hex()[:23]}]"

    ch = f"CH{event.channel_number + 1:02d}"
    actv = f"ACTV: 0x{active_notes:02X}"
    if event.is_note_on:
        return (
            f"{stamp} NOTE_ON  {note_name(event.note):<4} {ch} VEL:0x{event.velocity:02X} "
            f"{velocity_bar(event.velocity)} | {actv} | NOTE: 0x{event.note:02X}"
        )
    if event.is_note_off:
        return (
            f"{stamp} NOTE_OFF {note_name(event.note):<4} {ch} VEL:0x00 "
            f"{velocity_bar(0)} | {actv} | NOTE: 0x{event.note:02X}"
        )

    command = event.command
    if command == CONTROL_CHANGE:
        value = event.data[2]
        return (
            f"{stamp} CTRL_CHG {controller_name(event.data[1]):<4} {ch} VAL:0x{value:02X} "
            f"{velocity_bar(value)} | {actv} | CTRL: 0x{event.data[1]:02X}"
        )
    if command == PROGRAM_CHANGE:
        return f"{stamp} PROG_CHG {ch} PROGRAM {event.data[1]}"
    if command == PITCH_BEND:
        value = (event.data[2] << 7) | event.data[1]
        return f"{stamp} PITCH    {ch} VAL:0x{value:04X} ({value - 8192:+d})"
    if command in (CHANNEL_PRESSURE, POLY_AFTERTOUCH):
        return f"{stamp} PRESSURE {ch} {describe(event)}"
    return f"{stamp} {event.hex()}"


class TraceObserver:
    """Observer that writes one trace line per event to ``stream``."""

    def __init__(self, stream: Optional[TextIO] = None, *, show_meta: bool = True) -> None:
        self.stream = stream if stream is not None else sys.stdout
        self.show_meta = show_meta
        self.lock = threading.Lock()
        self.lines = 0

    def __call__(self, event: RawEvent, offset: float, active_notes: int) -> None:
        if event.kind is EventKind.META and not self.show_meta:
            return
        line = format_event(event, offset, active_notes)
        with self.lock:
            self.stream.write(line + "\n")
            self.stream.flush()
            self.lines += 1

    def message(self, tag: str, text: str) -> None:
        with self.lock:
            self.stream.write(format_message(tag, text) + "\n")
            self.stream.flush()
