"""Score assembly: the boundary between the converter and a score object.

The converter never builds measures or staves itself. It plans a
`ScoreLayout` (parts, staves, clefs, measure spans), hands it to a
`ScoreSink`, and then only inserts finished chords, rests, ties and
signatures through the sink's methods.
"""

import logging
from typing import Protocol

import pretty_midi

from midi_to_score.models import (
    ImportedTrack,
    IngestResult,
    NotatedChord,
    NotatedRest,
    Note,
    PartPlan,
    ReconstructedTrack,
    ScoreLayout,
    StaffPlan,
    Tie,
    Track,
)
from midi_to_score.timesig import MeasureSpan

logger = logging.getLogger(__name__)

# Tracks whose mean pitch is below this get a bass clef
BASS_CLEF_PITCH = 58


class ScoreSink(Protocol):
    """What a score object must offer to receive a converted MIDI file."""

    def prepare(self, layout: ScoreLayout) -> None:
        """Create parts, staves and measures for `layout`."""

    def measure_at(self, tick: int) -> MeasureSpan | None:
        """Resolve the measure containing `tick`."""

    def add_chord(self, staff: int, chord: NotatedChord, notes: list[Note]) -> None:
        """Insert a chord; `notes` are the arena notes named by `chord.note_ids`."""

    def add_rest(self, staff: int, rest: NotatedRest) -> None:
        """Insert a rest."""

    def add_tie(self, staff: int, tie: Tie) -> None:
        """Tie two previously inserted notes, identified by arena index."""

    def add_key_signature(self, staff: int, tick: int, accidentals: int) -> None:
        """Insert a key signature."""

    def add_time_signature(
        self, staff: int, tick: int, numerator: int, denominator: int
    ) -> None:
        """Insert a time signature."""

    def set_tempo(self, tick: int, bpm: float) -> None:
        """Record a tempo change."""

    def set_metadata(self, field: str, text: str) -> None:
        """Set a score text field (title, composer, copyright, ...)."""

    def add_lyric(self, staff: int, tick: int, text: str) -> None:
        """Attach a lyric to the chord at `tick`."""


class ScoreRecorder:
    """In-memory sink that records every call, in order.

    Useful for inspecting a conversion without a notation library, and as
    the reference for what a sink receives.
    """

    def __init__(self):
        self.layout: ScoreLayout | None = None
        self.chords: list[tuple[int, NotatedChord, list[Note]]] = []
        self.rests: list[tuple[int, NotatedRest]] = []
        self.ties: list[tuple[int, Tie]] = []
        self.key_signatures: list[tuple[int, int, int]] = []
        self.time_signatures: list[tuple[int, int, int, int]] = []
        self.tempos: dict[int, float] = {}
        self.metadata: dict[str, str] = {}
        self.lyrics: list[tuple[int, int, str]] = []

    @property
    def is_empty(self) -> bool:
        return self.layout is None and not (
            self.chords or self.rests or self.ties or self.metadata or self.tempos
        )

    def prepare(self, layout: ScoreLayout) -> None:
        self.layout = layout

    def measure_at(self, tick: int) -> MeasureSpan | None:
        return self.layout.measure_at(tick) if self.layout else None

    def add_chord(self, staff: int, chord: NotatedChord, notes: list[Note]) -> None:
        self.chords.append((staff, chord, notes))

    def add_rest(self, staff: int, rest: NotatedRest) -> None:
        self.rests.append((staff, rest))

    def add_tie(self, staff: int, tie: Tie) -> None:
        self.ties.append((staff, tie))

    def add_key_signature(self, staff: int, tick: int, accidentals: int) -> None:
        self.key_signatures.append((staff, tick, accidentals))

    def add_time_signature(
        self, staff: int, tick: int, numerator: int, denominator: int
    ) -> None:
        self.time_signatures.append((staff, tick, numerator, denominator))

    def set_tempo(self, tick: int, bpm: float) -> None:
        self.tempos[tick] = bpm

    def set_metadata(self, field: str, text: str) -> None:
        self.metadata[field] = text

    def add_lyric(self, staff: int, tick: int, text: str) -> None:
        self.lyrics.append((staff, tick, text))

    def staff_chords(self, staff: int) -> list[NotatedChord]:
        return [chord for s, chord, _ in self.chords if s == staff]


def part_name(track: Track) -> str:
    """Name a part after its track, falling back to the General MIDI program."""
    if track.name:
        return track.name
    if track.is_drum:
        return "Drumset"
    return pretty_midi.program_to_instrument_name(track.program)


def plan_layout(
    tracks: list[Track], measures: list[MeasureSpan], layout: ScoreLayout
) -> ScoreLayout:
    """Plan parts and staves for the tracks.

    A pitched track with program 0 followed by a track on the same channel
    is taken to be the right and left hand of a piano and becomes one part
    with a treble and a bass staff.

    Args:
        tracks: Tracks in score order.
        measures: Measure spans covering the piece.
        layout: Layout carrying the division and time signature map.

    Returns:
        A copy of `layout` with parts and measures filled in.
    """
    parts: list[PartPlan] = []
    staff_index = 0
    i = 0
    while i < len(tracks):
        track = tracks[i]
        part = PartPlan(
            name=part_name(track),
            program=track.program,
            channel=track.channel,
            is_drum=track.is_drum,
        )
        if track.is_drum:
            part.staves.append(StaffPlan(index=staff_index, track_index=i, clef="percussion"))
        elif (
            i < len(tracks) - 1
            and not tracks[i + 1].is_drum
            and tracks[i + 1].channel == track.channel
            and track.program == 0
        ):
            part.staves.append(StaffPlan(index=staff_index, track_index=i, clef="treble"))
            staff_index += 1
            i += 1
            part.staves.append(StaffPlan(index=staff_index, track_index=i, clef="bass"))
        else:
            clef = "bass" if track.mean_pitch < BASS_CLEF_PITCH else "treble"
            part.staves.append(StaffPlan(index=staff_index, track_index=i, clef=clef))
        parts.append(part)
        staff_index += 1
        i += 1
    return layout.model_copy(update={"parts": parts, "measures": measures})


def key_changes(key_map: dict[int, int]) -> list[tuple[int, int]]:
    """Return (tick, accidentals) for every tick where the key changes."""
    changes: list[tuple[int, int]] = []
    for tick in sorted(key_map):
        accidentals = key_map[tick]
        if changes and changes[-1][1] == accidentals:
            continue
        changes.append((tick, accidentals))
    return changes


def assemble(
    sink: ScoreSink,
    layout: ScoreLayout,
    tracks: list[ImportedTrack],
    reconstructed: list[ReconstructedTrack],
    ingest_result: IngestResult,
) -> None:
    """Push a fully converted piece into a sink.

    Args:
        sink: Destination score, already prepared with `layout`.
        layout: Planned parts, staves and measures.
        tracks: Imported tracks after hand separation, in score order.
        reconstructed: Reconstructed track for each entry of `tracks`.
        ingest_result: Score-wide meta information (tempo, metadata, keys,
            time signatures).
    """
    staves = [staff for part in layout.parts for staff in part.staves]

    for staff in staves:
        imported = tracks[staff.track_index]
        written = reconstructed[staff.track_index]
        for element in written.elements:
            if isinstance(element, NotatedChord):
                notes = [written.notes[i] for i in element.note_ids]
                sink.add_chord(staff.index, element, notes)
            else:
                sink.add_rest(staff.index, element)
        for tie in written.ties:
            sink.add_tie(staff.index, tie)

        key_map = imported.key_map or ingest_result.key_map
        if not key_map and not imported.track.is_drum:
            key_map = {0: 0}
        for tick, accidentals in key_changes(key_map):
            sink.add_key_signature(staff.index, tick, accidentals)

        for tick, text in imported.lyrics:
            sink.add_lyric(staff.index, tick, text)

    for event in ingest_result.time_sigs.events:
        if layout.measure_at(event.tick) is None:
            continue
        for staff in staves:
            sink.add_time_signature(
                staff.index, event.tick, event.numerator, event.denominator
            )

    for tick, bpm in sorted(ingest_result.tempo_map.items()):
        sink.set_tempo(tick, bpm)
    for field, text in ingest_result.metadata.items():
        sink.set_metadata(field, text)

    logger.debug(f"Assembled {len(staves)} staves over {len(layout.measures)} measures")
