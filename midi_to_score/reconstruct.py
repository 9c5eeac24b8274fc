"""Duration reconstruction: quantized chords to written chords, rests and ties.

Per voice, chords are consumed in onset order while a cursor tracks how far
the voice has been written. All chords sounding at the cursor are written
together with the shortest of their remaining lengths, clipped to the next
onset and to the barline, and rounded down to a legal value. Chords that
last longer are carried forward and tied to their continuation. Gaps in
voice 0 are filled with rests.
"""

import itertools
import logging
from collections.abc import Callable

from midi_to_score.durations import to_duration_list
from midi_to_score.models import (
    Chord,
    DrumMap,
    DurationValue,
    NotatedChord,
    NotatedRest,
    Note,
    ReconstructedTrack,
    StemDirection,
    Tie,
    Track,
)
from midi_to_score.timesig import MeasureSpan

logger = logging.getLogger(__name__)

MeasureResolver = Callable[[int], MeasureSpan | None]


class DurationReconstructor:
    """Writes the chord stream of one track into a ReconstructedTrack.

    While a chord is pending, the `tie_back` field of its notes holds the
    arena index of the segment written last, i.e. the note its next segment
    must be tied to.

    Attributes:
        resolver: Maps a tick to the measure containing it.
        division: Ticks per quarter note.
        use_dots: Allow dotted values.
        drum_map: Percussion mapping for stem directions, None for pitched
            tracks.
        result: The track being built.
    """

    def __init__(
        self,
        resolver: MeasureResolver,
        division: int = 480,
        use_dots: bool = False,
        drum_map: DrumMap | None = None,
    ):
        self.resolver = resolver
        self.division = division
        self.use_dots = use_dots
        self.drum_map = drum_map
        self.result = ReconstructedTrack()

    def convert_voice(self, chords: list[Chord], voice: int, last_tick: int) -> None:
        """Write all chords of one voice.

        Args:
            chords: Chords of the voice ordered by onset.
            voice: Voice number; only voice 0 gets rests.
            last_tick: End of the piece.
        """
        pending: list[Chord] = []
        cursor = 0
        for onset, group in itertools.groupby(chords, key=lambda c: c.onset_tick):
            self.process_pending(pending, voice, cursor, onset)
            cursor = onset
            pending.extend(c.model_copy(deep=True) for c in group)
        self.process_pending(pending, voice, cursor, last_tick)

    def process_pending(
        self, pending: list[Chord], voice: int, cursor: int, until: int
    ) -> None:
        """Write pending chords up to `until`, then fill the gap with rests.

        Chords still sounding at `until` stay in `pending` with their onset
        and duration advanced past the written part.

        Args:
            pending: Chords sounding at the cursor, all with the same onset.
            voice: Voice being written.
            cursor: Tick up to which the voice is written.
            until: Next onset in the voice, or the end of the piece.
        """
        while pending:
            tick = pending[0].onset_tick
            length = until - tick
            if length <= 0:
                break
            for chord in pending:
                if 0 < chord.duration_ticks < length:
                    length = chord.duration_ticks

            measure = self.resolver(tick)
            if measure is None:
                logger.warning(f"No measure at tick {tick}: dropping {len(pending)} chords")
                pending.clear()
                break
            # split notes on measure boundary
            if tick + length > measure.end:
                length = measure.end - tick

            values = to_duration_list(length, self.division, self.use_dots)
            if not values:
                logger.warning(
                    f"Cannot create duration list for length {length} at tick {tick}: "
                    f"dropping {len(pending)} chords"
                )
                pending.clear()
                break
            value = values[0]
            length = value.ticks

            self._write_chord(pending, voice, tick, value)
            pending[:] = [c for c in pending if self._advance(c, length)]
            cursor = tick + length

        if voice == 0:
            self.fill_rests(voice, cursor, until)

    def _write_chord(
        self, pending: list[Chord], voice: int, tick: int, value: DurationValue
    ) -> None:
        arena = self.result.notes
        note_ids = []
        stem = StemDirection.AUTO
        for chord in pending:
            for note in chord.notes:
                note_id = len(arena)
                written = Note(
                    pitch=note.pitch,
                    velocity=note.velocity,
                    onset_tick=tick,
                    length_ticks=value.ticks,
                )
                previous = note.tie_back
                if previous is not None:
                    written.tie_back = previous
                    arena[previous].tie_forward = note_id
                    self.result.ties.append(Tie(start=previous, end=note_id))
                arena.append(written)
                note_ids.append(note_id)
                note.tie_back = note_id

                if self.drum_map is not None:
                    if not self.drum_map.is_valid(note.pitch):
                        logger.warning(f"Unmapped drum note {note.pitch}")
                    elif stem == StemDirection.AUTO:
                        stem = self.drum_map.stem_direction(note.pitch)

        self.result.elements.append(
            NotatedChord(voice=voice, tick=tick, duration=value, note_ids=note_ids, stem=stem)
        )

    @staticmethod
    def _advance(chord: Chord, length: int) -> bool:
        """Move a pending chord past a written segment; False when it is finished."""
        if chord.duration_ticks <= length:
            return False
        chord.onset_tick += length
        chord.duration_ticks -= length
        return True

    def fill_rests(self, voice: int, cursor: int, until: int) -> None:
        """Fill [cursor, until) with rests, one whole-measure rest per full measure."""
        remaining = until - cursor
        while remaining > 0:
            measure = self.resolver(cursor)
            if measure is None:
                logger.debug(f"Rest at {cursor} past the end of the score")
                break
            length = min(remaining, measure.end - cursor)
            if length >= measure.ticks:
                self.result.elements.append(
                    NotatedRest(voice=voice, tick=cursor, ticks=measure.ticks)
                )
                cursor += measure.ticks
                remaining -= measure.ticks
                continue

            values = to_duration_list(length, self.division, self.use_dots)
            if not values:
                logger.warning(f"Cannot create duration list for rest {length} at {cursor}")
                break
            for value in values:
                self.result.elements.append(
                    NotatedRest(voice=voice, tick=cursor, ticks=value.ticks, duration=value)
                )
                cursor += value.ticks
                remaining -= value.ticks


def reconstruct_track(
    track: Track,
    last_tick: int,
    resolver: MeasureResolver,
    division: int = 480,
    use_dots: bool = False,
    drum_map: DrumMap | None = None,
) -> ReconstructedTrack:
    """Run the duration reconstructor over every voice of a track.

    Args:
        track: Track with quantized chords ordered by onset.
        last_tick: End of the piece (end of the last measure).
        resolver: Maps a tick to the measure containing it.
        division: Ticks per quarter note.
        use_dots: Allow dotted values.
        drum_map: Percussion mapping; only used for drum tracks.

    Returns:
        The written chords, rests and ties of the track.
    """
    reconstructor = DurationReconstructor(
        resolver,
        division=division,
        use_dots=use_dots,
        drum_map=drum_map if track.is_drum else None,
    )
    for voice in track.voices():
        chords = [c for c in track.chords if c.voice == voice]
        reconstructor.convert_voice(chords, voice, last_tick)
    result = reconstructor.result
    logger.debug(
        f"Reconstructed {len(result.chords)} chords, {len(result.rests)} rests, "
        f"{len(result.ties)} ties"
    )
    return result
