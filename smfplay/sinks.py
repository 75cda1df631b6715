"""Output and observer collaborators for the playback scheduler.

The scheduler only needs ``sink.send(event)``.  ``MidoOutputSink`` sends
to a real MIDI port through mido (``pip install mido python-rtmidi``);
``NullSink`` and ``RecordingSink`` are for dry runs and tests.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Protocol, Tuple

import mido

from .events import SYSEX, EventKind, RawEvent

log = logging.getLogger(__name__)


class OutputSink(Protocol):
    def send(self, event: RawEvent) -> None:
        ...


class Observer(Protocol):
    def __call__(self, event: RawEvent, offset: float, active_notes: int) -> None:
        ...


class NullSink:
    """Accepts and discards every event."""

    def send(self, event: RawEvent) -> None:
        pass

    def close(self) -> None:
        pass


class RecordingSink:
    """Keeps ``(event, clock())`` pairs in arrival order."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self.received: List[Tuple[RawEvent, float]] = []

    def send(self, event: RawEvent) -> None:
        self.received.append((event, self.clock()))

    @property
    def events(self) -> List[RawEvent]:
        return [event for event, _ in self.received]

    def close(self) -> None:
        pass


def list_output_ports() -> List[str]:
    return list(mido.get_output_names())


def to_mido_message(event: RawEvent) -> Optional[mido.Message]:
    """Wire message for ``event``.

    ``None`` for meta events, which never leave the file, and for 0xF7
    escape packets, which mido cannot send verbatim.
    """
    if event.kind is EventKind.CHANNEL:
        return mido.Message.from_bytes(event.data)
    if event.kind is EventKind.SYSEX and event.status == SYSEX:
        payload = event.payload
        if payload.endswith(b"\xF7"):
            payload = payload[:-1]
        return mido.Message("sysex", data=payload)
    return None


class MidoOutputSink:
    """Send channel and sysex events to a mido output port.

    ``port_name=None`` opens the backend's default output.
    """

    def __init__(self, port_name: Optional[str] = None, *, port: Optional[mido.ports.BaseOutput] = None) -> None:
        self.port_name = port_name
        self.port = port if port is not None else mido.open_output(port_name)
        log.info("opened MIDI output %r", getattr(self.port, "name", port_name))

    def send(self, event: RawEvent) -> None:
        message = to_mido_message(event)
        if message is not None:
            self.port.send(message)

    def close(self) -> None:
        if self.port is not None and not self.port.closed:
            self.port.close()

    def __enter__(self) -> "MidoOutputSink":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
