"""Time signature map and measure arithmetic.

The map stores time signature changes keyed by tick and answers the two
questions every later stage asks: where does bar N start (`bar2tick`) and
which measure contains a tick (`measure_at`). A change that does not fall on
a barline shortens the measure it interrupts; the new signature starts a new
bar at its own tick.
"""

import bisect
import math

from pydantic import BaseModel, ConfigDict, Field


class TimeSigEvent(BaseModel):
    """A time signature taking effect at `tick`, which starts bar `bar`."""

    model_config = ConfigDict(frozen=True)

    tick: int = Field(..., ge=0)
    numerator: int = Field(..., ge=1)
    denominator: int = Field(..., ge=1)
    bar: int = Field(0, ge=0)


class MeasureSpan(BaseModel):
    """One measure: its index, tick range [start, end) and time signature."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)
    numerator: int = 4
    denominator: int = 4

    @property
    def ticks(self) -> int:
        return self.end - self.start


def _default_events() -> list[TimeSigEvent]:
    return [TimeSigEvent(tick=0, numerator=4, denominator=4, bar=0)]


class TimeSigMap(BaseModel):
    """Ordered mapping tick -> (numerator, denominator).

    Attributes:
        division: Ticks per quarter note.
        events: Time signature changes ordered by tick; tick 0 always present.
    """

    division: int = Field(480, ge=1)
    events: list[TimeSigEvent] = Field(default_factory=_default_events)

    def ticks_per_measure(self, numerator: int, denominator: int) -> int:
        return self.division * 4 * numerator // denominator

    def add(self, tick: int, numerator: int, denominator: int) -> None:
        """Insert or replace the time signature at `tick`."""
        entries = {e.tick: (e.numerator, e.denominator) for e in self.events}
        entries[tick] = (numerator, denominator)
        entries.setdefault(0, (4, 4))
        self._normalize(entries)

    def _normalize(self, entries: dict[int, tuple[int, int]]) -> None:
        events: list[TimeSigEvent] = []
        for tick in sorted(entries):
            numerator, denominator = entries[tick]
            if events:
                prev = events[-1]
                span = self.ticks_per_measure(prev.numerator, prev.denominator)
                bar = prev.bar + math.ceil((tick - prev.tick) / span)
            else:
                bar = 0
            events.append(
                TimeSigEvent(
                    tick=tick, numerator=numerator, denominator=denominator, bar=bar
                )
            )
        self.events = events

    def timesig_at(self, tick: int) -> tuple[int, int]:
        event = self._event_at_tick(tick)
        return event.numerator, event.denominator

    def _event_at_tick(self, tick: int) -> TimeSigEvent:
        idx = bisect.bisect_right([e.tick for e in self.events], tick) - 1
        return self.events[max(idx, 0)]

    def _event_at_bar(self, bar: int) -> TimeSigEvent:
        idx = bisect.bisect_right([e.bar for e in self.events], bar) - 1
        return self.events[max(idx, 0)]

    def bar2tick(self, bar: int, beat: int = 0) -> int:
        """Return the tick of `beat` within bar `bar` (both zero based)."""
        event = self._event_at_bar(bar)
        span = self.ticks_per_measure(event.numerator, event.denominator)
        beat_ticks = self.division * 4 // event.denominator
        return event.tick + (bar - event.bar) * span + beat * beat_ticks

    def tick2bar(self, tick: int) -> int:
        """Return the index of the bar containing `tick`."""
        event = self._event_at_tick(tick)
        span = self.ticks_per_measure(event.numerator, event.denominator)
        return event.bar + (tick - event.tick) // span

    def measure_at(self, tick: int, limit: int | None = None) -> MeasureSpan | None:
        """Resolve the measure containing `tick`.

        Args:
            tick: Position in ticks.
            limit: Number of measures in the score; ticks in later measures
                resolve to None.

        Returns:
            The measure span, or None when `tick` is outside the score.
        """
        if tick < 0:
            return None
        bar = self.tick2bar(tick)
        if limit is not None and bar >= limit:
            return None
        return self.measure(bar)

    def measure(self, bar: int) -> MeasureSpan:
        start = self.bar2tick(bar)
        numerator, denominator = self.timesig_at(start)
        return MeasureSpan(
            index=bar,
            start=start,
            end=self.bar2tick(bar + 1),
            numerator=numerator,
            denominator=denominator,
        )

    def bar_count(self, last_tick: int) -> int:
        """Return the number of bars needed to reach `last_tick` (at least one)."""
        bar = self.tick2bar(last_tick)
        if self.bar2tick(bar) < last_tick:
            bar += 1
        return max(bar, 1)

    def measures(self, last_tick: int) -> list[MeasureSpan]:
        """Return the spans of all bars up to and including `last_tick`."""
        return [self.measure(i) for i in range(self.bar_count(last_tick))]
