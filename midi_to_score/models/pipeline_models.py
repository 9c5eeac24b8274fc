"""Models for representing pipeline processing stages.

This module contains Pydantic models that encapsulate the results of each
stage of the MIDI-to-score conversion, from ingestion through duration
reconstruction, plus the layout handed to the score sink. Each model is the
complete output of one step, so stages can be tested in isolation.
"""

from pydantic import BaseModel, ConfigDict, Field

from midi_to_score.models.core_models import Chord, Note, Track
from midi_to_score.models.settings_models import StemDirection
from midi_to_score.timesig import MeasureSpan, TimeSigMap


class MetaDelta(BaseModel):
    """State change produced by interpreting one meta event.

    Exactly one of the payload fields is set for a meaningful delta; an
    all-empty delta means the event changed nothing.

    Attributes:
        tick: Position of the originating event.
        track_name: New track name.
        key_accidentals: New key signature, only when it differs from the
            key in effect before the event.
        tempo_bpm: New tempo.
        time_signature: New (numerator, denominator).
        lyric: Lyric or free text attached at `tick`.
        metadata: Score-level text field as (field name, value).
    """

    model_config = ConfigDict(frozen=True)

    tick: int = Field(0, ge=0, description="Event position in ticks")
    track_name: str | None = Field(None, description="New track name")
    key_accidentals: int | None = Field(None, description="New key signature")
    tempo_bpm: float | None = Field(None, description="New tempo in BPM")
    time_signature: tuple[int, int] | None = Field(
        None, description="New time signature"
    )
    lyric: str | None = Field(None, description="Lyric text")
    metadata: tuple[str, str] | None = Field(None, description="Score text field")

    @property
    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.track_name,
                self.key_accidentals,
                self.tempo_bpm,
                self.time_signature,
                self.lyric,
                self.metadata,
            )
        )


class ImportedTrack(BaseModel):
    """A note-bearing track together with its interpreted meta events.

    Attributes:
        track: The track and its chord stream.
        key_map: Ordered tick -> accidentals map from key signature events.
        lyrics: (tick, text) pairs from lyric and text events.
    """

    track: Track
    key_map: dict[int, int] = Field(default_factory=dict, description="Key map")
    lyrics: list[tuple[int, str]] = Field(
        default_factory=list, description="Lyrics by tick"
    )


class IngestResult(BaseModel):
    """Output of the event ingestion stage.

    Attributes:
        tracks: Imported note-bearing tracks in file order.
        time_sigs: Time signature map collected from all tracks.
        last_tick: Last tick touched by any event.
        key_map: Score-wide key map from tracks without notes.
        tempo_map: Ordered tick -> BPM map.
        metadata: Score text fields (title, composer, copyright, ...).
    """

    tracks: list[ImportedTrack] = Field(default_factory=list)
    time_sigs: TimeSigMap = Field(default_factory=TimeSigMap)
    last_tick: int = Field(0, ge=0)
    key_map: dict[int, int] = Field(default_factory=dict)
    tempo_map: dict[int, float] = Field(default_factory=dict)
    metadata: dict[str, str] = Field(default_factory=dict)


class MeasureGrid(BaseModel):
    """Quantization grid chosen for one measure.

    Attributes:
        start: First tick of the measure.
        end: First tick after the measure.
        div: Ladder rung selected from the shortest chord.
        raster: Grid the onsets and durations were snapped to.
        shortest: Shortest chord duration found in the measure.
    """

    model_config = ConfigDict(frozen=True)

    start: int
    end: int
    div: int
    raster: int
    shortest: int


class QuantizationResult(BaseModel):
    """Output of the quantizer for one track.

    Attributes:
        chords: Quantized chords ordered by onset.
        grids: Grid chosen for every measure that contained chords.
        dropped: Number of chords dropped because their duration vanished.
    """

    chords: list[Chord] = Field(default_factory=list)
    grids: list[MeasureGrid] = Field(default_factory=list)
    dropped: int = Field(0, ge=0)

    def grid_at(self, tick: int) -> MeasureGrid | None:
        for grid in self.grids:
            if grid.start <= tick < grid.end:
                return grid
        return None


class DurationValue(BaseModel):
    """A legal notated duration.

    Attributes:
        ticks: Length in ticks.
        type: music21 duration type name ("whole", "eighth", "16th", ...).
        dots: Number of augmentation dots.
    """

    model_config = ConfigDict(frozen=True)

    ticks: int = Field(..., ge=1)
    type: str
    dots: int = Field(0, ge=0)

    def quarter_length(self, division: int) -> float:
        return self.ticks / division


class NotatedChord(BaseModel):
    """A chord as it is written: one legal duration, notes in the arena.

    Attributes:
        voice: Notation voice.
        tick: Start position in ticks.
        duration: Written duration.
        note_ids: Indices of the member notes in the track's note arena.
        stem: Stem direction, set for percussion notes.
    """

    voice: int = 0
    tick: int
    duration: DurationValue
    note_ids: list[int] = Field(default_factory=list)
    stem: StemDirection = StemDirection.AUTO


class NotatedRest(BaseModel):
    """A written rest.

    Attributes:
        voice: Notation voice.
        tick: Start position in ticks.
        ticks: Length in ticks.
        duration: Written duration, None for a whole-measure rest.
    """

    voice: int = 0
    tick: int
    ticks: int
    duration: DurationValue | None = None

    @property
    def is_measure_rest(self) -> bool:
        return self.duration is None


class Tie(BaseModel):
    """A tie between two notes of the arena, always pointing forward in time."""

    model_config = ConfigDict(frozen=True)

    start: int
    end: int


class ReconstructedTrack(BaseModel):
    """Output of the duration reconstructor for one track.

    Attributes:
        notes: Note arena; chords and ties refer to notes by index.
        elements: Chords and rests in the order they were produced.
        ties: One tie per continued note per boundary.
    """

    notes: list[Note] = Field(default_factory=list)
    elements: list[NotatedChord | NotatedRest] = Field(default_factory=list)
    ties: list[Tie] = Field(default_factory=list)

    @property
    def chords(self) -> list[NotatedChord]:
        return [e for e in self.elements if isinstance(e, NotatedChord)]

    @property
    def rests(self) -> list[NotatedRest]:
        return [e for e in self.elements if isinstance(e, NotatedRest)]

    def tie_chain(self, note_id: int) -> list[int]:
        """Return the arena indices of the tie chain containing `note_id`.

        Args:
            note_id: Any note of the chain.

        Returns:
            Indices from the first note of the chain to the last.
        """
        first = note_id
        while self.notes[first].tie_back is not None:
            first = self.notes[first].tie_back
        chain = [first]
        while self.notes[chain[-1]].tie_forward is not None:
            chain.append(self.notes[chain[-1]].tie_forward)
        return chain


class StaffPlan(BaseModel):
    """One staff of the score and the track feeding it.

    Attributes:
        index: Staff index in the score, top to bottom.
        track_index: Index of the source track after hand separation.
        clef: Initial clef: "treble", "bass" or "percussion".
    """

    index: int
    track_index: int
    clef: str = "treble"


class PartPlan(BaseModel):
    """One instrument part.

    Attributes:
        name: Part name.
        program: MIDI program.
        channel: MIDI channel.
        is_drum: Percussion part.
        staves: Staves of the part (two for a piano pair).
    """

    name: str = ""
    program: int = 0
    channel: int = 0
    is_drum: bool = False
    staves: list[StaffPlan] = Field(default_factory=list)


class ScoreLayout(BaseModel):
    """Everything a sink needs to build parts, staves and measures.

    Attributes:
        division: Ticks per quarter note.
        parts: Parts in score order.
        measures: Measure spans covering the whole piece.
        time_sigs: Time signature map of the piece.
    """

    division: int = 480
    parts: list[PartPlan] = Field(default_factory=list)
    measures: list[MeasureSpan] = Field(default_factory=list)
    time_sigs: TimeSigMap = Field(default_factory=TimeSigMap)

    @property
    def staff_count(self) -> int:
        return sum(len(p.staves) for p in self.parts)

    @property
    def end_tick(self) -> int:
        return self.measures[-1].end if self.measures else 0

    def measure_at(self, tick: int) -> MeasureSpan | None:
        """Resolve the measure containing `tick`, or None past the last one."""
        return self.time_sigs.measure_at(tick, limit=len(self.measures))


class ConversionResult(BaseModel):
    """Summary of a completed conversion.

    Attributes:
        layout: Layout handed to the sink.
        tracks: Reconstructed tracks, in staff order.
    """

    layout: ScoreLayout
    tracks: list[ReconstructedTrack] = Field(default_factory=list)
