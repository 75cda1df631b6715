"""Real-time playback of a merged event stream.

Every due time is measured from a single start instant ``t0``::

  due = t0 + elapsed(event.ticks)

rather than from the previous event, so scheduling jitter never
accumulates.  Late events are sent immediately and never skipped.

The wait between events is ``threading.Event.wait``; calling
:meth:`PlaybackScheduler.cancel` from another thread wakes it at once.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Set

from .errors import PlaybackCancelled
from .events import CC_ALL_NOTES_OFF, CONTROL_CHANGE, RawEvent
from .sinks import Observer, OutputSink
from .tempo import TempoChange, TempoTimeline

log = logging.getLogger(__name__)

DEFAULT_LATE_THRESHOLD = 0.005  # seconds


class PlaybackState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ActiveNoteSet:
    """Note numbers currently sounding, for display only."""

    def __init__(self) -> None:
        self.notes: Set[int] = set()
        self.channels: Set[int] = set()  # every channel that saw a Note-On

    def apply(self, event: RawEvent) -> None:
        if event.is_note_on:
            self.notes.add(event.note)
            self.channels.add(event.channel_number)
        elif event.is_note_off:
            self.notes.discard(event.note)

    def clear(self) -> None:
        self.notes.clear()

    def __len__(self) -> int:
        return len(self.notes)

    def __contains__(self, note: object) -> bool:
        return note in self.notes


@dataclass(frozen=True)
class PlaybackReport:
    state: PlaybackState
    dispatched: int
    active_notes: int
    elapsed: float  # seconds since t0
    late_events: int
    max_lateness: float  # seconds


class PlaybackScheduler:
    """Send events to ``sink`` at their wall-clock due times.

    Parameters
    ----------
    sink : OutputSink
        Receives every event, meta events included.
    observers : iterable of Observer
        Called after each send with ``(event, offset_seconds, active_notes)``.
    clock : callable
        Monotonic clock in seconds.
    wait : callable, optional
        ``wait(seconds) -> bool`` returning True if playback was cancelled
        during the wait.  Defaults to waiting on the cancel event.
    late_threshold : float
        Lateness in seconds above which an event counts as late.
    all_notes_off_on_stop : bool
        On cancel, send Control Change 123 to every channel that played a
        note so nothing is left hanging on the device.
    """

    def __init__(
        self,
        sink: OutputSink,
        observers: Iterable[Observer] = (),
        *,
        clock: Callable[[], float] = time.monotonic,
        wait: Optional[Callable[[float], bool]] = None,
        cancel_event: Optional[threading.Event] = None,
        late_threshold: float = DEFAULT_LATE_THRESHOLD,
        all_notes_off_on_stop: bool = True,
    ) -> None:
        self.sink = sink
        self.observers: List[Observer] = list(observers)
        self.clock = clock
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self._wait = wait if wait is not None else self.cancel_event.wait
        self.late_threshold = late_threshold
        self.all_notes_off_on_stop = all_notes_off_on_stop

        self.state = PlaybackState.IDLE
        self.active_notes = ActiveNoteSet()
        self.dispatched = 0
        self.late_events = 0
        self.max_lateness = 0.0
        self._t0: Optional[float] = None
        self._last_tick = 0

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def report(self) -> PlaybackReport:
        elapsed = 0.0 if self._t0 is None else self.clock() - self._t0
        return PlaybackReport(
            state=self.state,
            dispatched=self.dispatched,
            active_notes=len(self.active_notes),
            elapsed=elapsed,
            late_events=self.late_events,
            max_lateness=self.max_lateness,
        )

    def play(
        self,
        events: Sequence[RawEvent],
        tempo_map: Sequence[TempoChange],
        ticks_per_quarter: int,
    ) -> PlaybackReport:
        """Play ``events`` once, blocking until done.

        Raises :class:`PlaybackCancelled` if :meth:`cancel` is called
        before the last event.  Exceptions from the sink or an observer
        propagate unchanged; ``self.dispatched`` tells how far it got.
        """
        if self.state is not PlaybackState.IDLE:
            raise RuntimeError(f"scheduler already used (state {self.state.value})")

        timeline = TempoTimeline(tempo_map, ticks_per_quarter)
        self.state = PlaybackState.RUNNING
        self._t0 = t0 = self.clock()
        log.info("playback started: %d events", len(events))

        try:
            for event in events:
                if self.cancelled:
                    raise PlaybackCancelled(self.dispatched)

                due = t0 + timeline.elapsed(event.ticks)
                remaining = due - self.clock()
                if remaining > 0 and self._wait(remaining):
                    raise PlaybackCancelled(self.dispatched)

                now = self.clock()
                lateness = now - due
                if lateness > self.late_threshold:
                    self.late_events += 1
                    self.max_lateness = max(self.max_lateness, lateness)

                self.sink.send(event)
                self.dispatched += 1
                self._last_tick = event.ticks
                self.active_notes.apply(event)
                for observer in self.observers:
                    observer(event, now - t0, len(self.active_notes))
        except PlaybackCancelled as cancelled:
            self.state = PlaybackState.CANCELLED
            log.info("playback cancelled after %d of %d events", self.dispatched, len(events))
            if self.all_notes_off_on_stop:
                try:
                    self._silence()
                except Exception as exc:
                    log.error("all notes off failed after cancel: %s", exc)
                    raise cancelled from exc
            raise
        except BaseException:
            self.state = PlaybackState.FAILED
            log.error("playback failed after %d of %d events", self.dispatched, len(events))
            raise

        self.state = PlaybackState.COMPLETED
        report = self.report()
        log.info(
            "playback complete: %d events in %.3fs, %d late (max %.1f ms)",
            report.dispatched, report.elapsed, report.late_events, report.max_lateness * 1000,
        )
        return report

    def _silence(self) -> None:
        for channel in sorted(self.active_notes.channels):
            self.sink.send(
                RawEvent.channel(self._last_tick, CONTROL_CHANGE | channel, CC_ALL_NOTES_OFF, 0)
            )
        self.active_notes.clear()


def play(
    events: Sequence[RawEvent],
    tempo_map: Sequence[TempoChange],
    ticks_per_quarter: int,
    sink: OutputSink,
    **kwargs,
) -> PlaybackReport:
    """Build a :class:`PlaybackScheduler` for ``sink`` and play through it."""
    return PlaybackScheduler(sink, **kwargs).play(events, tempo_map, ticks_per_quarter)
