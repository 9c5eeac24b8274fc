"""Decomposition of tick lengths into legal notated durations.

Notation can only write a fixed set of values (whole, half, quarter, ...,
optionally dotted). A quantized length is written as a sequence of such
values joined by ties; these helpers compute that sequence and split spans
at barlines.
"""

import logging
from functools import lru_cache

from music21 import duration as m21duration

from midi_to_score.models.pipeline_models import DurationValue
from midi_to_score.timesig import TimeSigMap

logger = logging.getLogger(__name__)

# Longest to shortest
NOTE_TYPES = (
    "breve",
    "whole",
    "half",
    "quarter",
    "eighth",
    "16th",
    "32nd",
    "64th",
    "128th",
)


@lru_cache(maxsize=None)
def legal_values(division: int = 480, use_dots: bool = False) -> tuple[DurationValue, ...]:
    """Return every writable value representable at `division`, longest first.

    Args:
        division: Ticks per quarter note.
        use_dots: Include single-dotted values.

    Returns:
        Tuple of DurationValue objects sorted by descending length. Values
        that would need a fractional tick count are left out.
    """
    values: list[DurationValue] = []
    for type_name in NOTE_TYPES:
        for dots in (0, 1) if use_dots else (0,):
            quarter_length = m21duration.convertTypeToQuarterLength(type_name, dots)
            ticks = quarter_length * division
            if ticks != int(ticks) or ticks < 1:
                continue
            values.append(DurationValue(ticks=int(ticks), type=type_name, dots=dots))
    values.sort(key=lambda v: v.ticks, reverse=True)
    return tuple(values)


@lru_cache(maxsize=1024)
def to_duration_list(
    ticks: int, division: int = 480, use_dots: bool = False
) -> tuple[DurationValue, ...]:
    """Decompose a length into legal values, longest first.

    The decomposition is greedy: the longest value that still fits is taken
    until nothing fits. A remainder shorter than the shortest legal value
    cannot be written and is left out of the result.

    Args:
        ticks: Length to decompose.
        division: Ticks per quarter note.
        use_dots: Allow dotted values.

    Returns:
        Tuple of DurationValue objects; empty if `ticks` is shorter than
        the shortest legal value.
    """
    result: list[DurationValue] = []
    remaining = ticks
    for value in legal_values(division, use_dots):
        while remaining >= value.ticks:
            result.append(value)
            remaining -= value.ticks
    if remaining and result:
        logger.debug(f"Duration {ticks} leaves {remaining} ticks unwritten")
    return tuple(result)


def split_at_barlines(
    start: int, length: int, time_sigs: TimeSigMap
) -> list[tuple[int, int]]:
    """Split a span so that no piece crosses a barline.

    Args:
        start: First tick of the span.
        length: Length of the span in ticks.
        time_sigs: Map giving the barline positions.

    Returns:
        List of (start, length) pieces in time order whose lengths add up
        to `length`.
    """
    pieces: list[tuple[int, int]] = []
    tick, end = start, start + length
    while tick < end:
        measure = time_sigs.measure_at(tick)
        piece_end = min(end, measure.end)
        pieces.append((tick, piece_end - tick))
        tick = piece_end
    return pieces
