"""Adaptive per-measure quantization.

Each measure gets its own grid, derived from the shortest chord starting in
it: a measure of eighth notes is snapped coarsely, one containing
thirty-second notes finely. After snapping, overlapping notes of the same
pitch are truncated so that the note stream can be written without
collisions.
"""

import logging

from midi_to_score.models import Chord, MeasureGrid, QuantizationResult, insert_chord
from midi_to_score.timesig import TimeSigMap

logger = logging.getLogger(__name__)


def quantize_len(length: int, raster: int) -> int:
    """Round a length to the closest multiple of `raster`, at least one raster."""
    if raster <= 0:
        return length
    return max(raster, (length + raster // 2) // raster * raster)


def halve_len(length: int, raster: int) -> int:
    """Legacy raster quantizer: round up to `raster`, halve, round up again.

    When the shortest note sits exactly on a ladder rung this gives half of
    that rung, which is the grid the onsets are snapped to.
    """
    rounded = -(-length // raster) * raster
    rounded = max(rounded // 2, 1)
    return -(-rounded // raster) * raster


def select_div(shortest: int, ladder: list[int]) -> int:
    """Pick the smallest ladder rung that is at least `shortest`.

    Args:
        shortest: Shortest chord duration in the measure.
        ladder: Rungs in ticks, finest first.

    Returns:
        The selected rung, clamped to the ladder's extremes.
    """
    for rung in ladder:
        if shortest <= rung:
            return rung
    return ladder[-1]


def measure_raster(shortest: int, ladder: list[int]) -> tuple[int, int]:
    """Compute (div, raster) for a measure whose shortest chord is `shortest`."""
    div = select_div(shortest, ladder)
    if div == ladder[0]:
        return div, div
    return div, halve_len(shortest, max(div // 2, 1))


def snap_onset(onset: int, raster: int) -> int:
    return (onset + raster // 2) // raster * raster


def quantize_measure(
    chords: list[Chord], start: int, end: int, ladder: list[int]
) -> tuple[list[Chord], MeasureGrid | None]:
    """Quantize the chords whose onset lies in [start, end).

    Args:
        chords: All chords of the track, ordered by onset.
        start: First tick of the measure.
        end: First tick after the measure.
        ladder: Quantization rungs in ticks, finest first.

    Returns:
        Tuple of (rewritten copies of the measure's chords, grid used), or
        ([], None) when no chord starts in the measure.
    """
    members = [c for c in chords if start <= c.onset_tick < end]
    if not members:
        return [], None

    shortest = min(c.duration_ticks for c in members)
    div, raster = measure_raster(shortest, ladder)

    result = []
    for chord in members:
        onset = snap_onset(chord.onset_tick, raster)
        duration = quantize_len(chord.duration_ticks, raster)
        notes = [
            n.model_copy(update={"onset_tick": onset, "length_ticks": duration})
            for n in chord.notes
        ]
        result.append(
            chord.model_copy(
                update={"onset_tick": onset, "duration_ticks": duration, "notes": notes}
            )
        )
    grid = MeasureGrid(start=start, end=end, div=div, raster=raster, shortest=shortest)
    return result, grid


def resolve_overlaps(chords: list[Chord]) -> tuple[list[Chord], int]:
    """Truncate chords overlapped by a later chord of the same pitch and voice.

    For each chord, the first later chord on the same voice that shares a
    pitch and starts before the chord ends cuts the chord to the gap between
    the two onsets. Chords left with no duration are dropped.

    Args:
        chords: Quantized chords ordered by onset.

    Returns:
        Tuple of (surviving chords, number of dropped chords).
    """
    kept: list[Chord] = []
    dropped = 0
    for i, chord in enumerate(chords):
        for later in chords[i + 1 :]:
            if later.onset_tick >= chord.offset_tick:
                break
            if later.voice != chord.voice or not (chord.pitches & later.pitches):
                continue
            logger.warning(
                f"Overlapping events: {chord.onset_tick}+{chord.duration_ticks} "
                f"{later.onset_tick}+{later.duration_ticks}"
            )
            chord.duration_ticks = later.onset_tick - chord.onset_tick
            for note in chord.notes:
                note.length_ticks = chord.duration_ticks
            break
        if chord.duration_ticks <= 0:
            logger.warning(f"Duration <= 0: dropping chord at {chord.onset_tick}")
            dropped += 1
            continue
        kept.append(chord)
    return kept, dropped


def quantize_track(
    chords: list[Chord], time_sigs: TimeSigMap, last_tick: int, ladder: list[int]
) -> QuantizationResult:
    """Quantize a chord stream measure by measure and remove overlaps.

    Args:
        chords: Chords ordered by onset.
        time_sigs: Time signature map giving the measure boundaries.
        last_tick: Last tick of the piece; measures are processed until one
            ends past it.
        ladder: Quantization rungs in ticks, finest first.

    Returns:
        QuantizationResult with the new chords ordered by their new onset
        and the grid of every measure that had chords.
    """
    quantized: list[Chord] = []
    grids: list[MeasureGrid] = []
    start = 0
    bar = 1
    while True:
        end = time_sigs.bar2tick(bar)
        measure_chords, grid = quantize_measure(chords, start, end, ladder)
        for chord in measure_chords:
            insert_chord(quantized, chord)
        if grid is not None:
            grids.append(grid)
        if end > last_tick:
            break
        start = end
        bar += 1

    kept, dropped = resolve_overlaps(quantized)
    logger.debug(f"Quantized {len(kept)} chords over {bar} measures")
    return QuantizationResult(chords=kept, grids=grids, dropped=dropped)
