"""Core domain models for MIDI-to-score conversion."""

import bisect
from enum import Enum

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from midi_to_score.models.settings_models import TrackOptions


class EventType(str, Enum):
    """Kinds of raw MIDI events the importer keeps."""

    NOTE_ON = "note_on"
    NOTE_OFF = "note_off"
    PROGRAM = "program"
    META = "meta"


class MetaKind(str, Enum):
    """Meta event sub-types understood by the meta interpreter."""

    TEXT = "text"
    LYRIC = "lyric"
    TRACK_NAME = "track_name"
    TEMPO = "tempo"
    KEY_SIGNATURE = "key_signature"
    TIME_SIGNATURE = "time_signature"
    COPYRIGHT = "copyright"
    TITLE = "title"
    SUBTITLE = "subtitle"
    COMPOSER = "composer"
    TRANSLATOR = "translator"
    POET = "poet"
    UNKNOWN = "unknown"


class RawEvent(BaseModel):
    """A single MIDI event with its tick already normalized.

    Only the fields relevant to `type` are meaningful; the rest keep their
    defaults. Meta payloads are decoded into `text`, `tempo_bpm`,
    `key_accidentals` or `numerator`/`denominator` depending on `meta_kind`.

    Attributes:
        track: Index of the channel-separated track the event belongs to.
        tick: Position in internal ticks.
        type: Event kind.
        channel: MIDI channel (0-15).
        pitch: Note number for note events.
        velocity: Note velocity for note events.
        program: Program number for program changes.
        meta_kind: Meta sub-type for meta events.
        meta_code: Raw meta type byte, kept for diagnostics.
    """

    model_config = ConfigDict(frozen=True)

    track: int = Field(0, ge=0, description="Track index")
    tick: int = Field(..., ge=0, description="Position in internal ticks")
    type: EventType = Field(..., description="Event kind")
    channel: int = Field(0, ge=0, le=15, description="MIDI channel")
    pitch: int = Field(0, ge=0, le=127, description="MIDI note number")
    velocity: int = Field(0, ge=0, le=127, description="Note velocity")
    program: int = Field(0, ge=0, le=127, description="Program number")
    meta_kind: MetaKind | None = Field(None, description="Meta sub-type")
    meta_code: int | None = Field(None, description="Raw meta type byte")
    text: str = Field("", description="Text payload")
    tempo_bpm: float | None = Field(None, description="Tempo in BPM")
    key_accidentals: int | None = Field(None, description="Sharps (+) or flats (-)")
    numerator: int | None = Field(None, description="Time signature numerator")
    denominator: int | None = Field(None, description="Time signature denominator")


class Note(BaseModel):
    """One sounding pitch.

    While chords are built and quantized the tie fields stay empty. In a
    reconstructed track they hold indices into the track's note arena, so a
    tie chain can be walked without the notes owning each other.

    Attributes:
        pitch: MIDI note number.
        velocity: Note-on velocity.
        onset_tick: Start position in ticks.
        length_ticks: Length in ticks.
        tie_back: Arena index of the note this one continues, if any.
        tie_forward: Arena index of the note continuing this one, if any.
    """

    pitch: int = Field(..., ge=0, le=127, description="MIDI note number")
    velocity: int = Field(64, ge=0, le=127, description="Note velocity")
    onset_tick: int = Field(..., ge=0, description="Start in ticks")
    length_ticks: int = Field(..., ge=0, description="Length in ticks")
    tie_back: int | None = Field(None, description="Arena index of predecessor")
    tie_forward: int | None = Field(None, description="Arena index of successor")


class Chord(BaseModel):
    """Notes sharing one onset, in import order (not pitch order).

    Attributes:
        voice: Notation voice.
        onset_tick: Start position in ticks.
        duration_ticks: Length in ticks.
        notes: Member notes.
    """

    voice: int = Field(0, ge=0, le=3, description="Notation voice")
    onset_tick: int = Field(..., description="Start in ticks")
    duration_ticks: int = Field(..., description="Length in ticks")
    notes: list[Note] = Field(default_factory=list, description="Member notes")

    @property
    def offset_tick(self) -> int:
        return self.onset_tick + self.duration_ticks

    @property
    def lowest_pitch(self) -> int:
        return min(n.pitch for n in self.notes)

    @property
    def pitches(self) -> set[int]:
        return {n.pitch for n in self.notes}


def insert_chord(chords: list[Chord], chord: Chord) -> None:
    """Insert a chord keeping `chords` ordered by onset.

    Chords with an equal onset keep their insertion order, so the list
    behaves like a multimap keyed by tick.
    """
    bisect.insort_right(chords, chord, key=lambda c: c.onset_tick)


class Track(BaseModel):
    """A channel-separated MIDI track and its chord stream.

    Attributes:
        name: Track name from the track-name meta event.
        channel: MIDI channel the track plays on.
        program: Last program change seen.
        is_drum: True for the General MIDI percussion channel.
        options: Import options travelling with the track.
        chords: Chords ordered by onset, duplicate onsets allowed.
        min_pitch: Lowest pitch in the track.
        max_pitch: Highest pitch in the track.
        mean_pitch: Mean pitch of all notes.
    """

    name: str = Field("", description="Track name")
    channel: int = Field(0, ge=0, le=15, description="MIDI channel")
    program: int = Field(0, ge=0, le=127, description="Program number")
    is_drum: bool = Field(False, description="Percussion track")
    options: TrackOptions = Field(
        default_factory=TrackOptions, description="Per-track import options"
    )
    chords: list[Chord] = Field(default_factory=list, description="Chord stream")
    min_pitch: int = Field(127, description="Lowest pitch")
    max_pitch: int = Field(0, description="Highest pitch")
    mean_pitch: float = Field(0.0, description="Mean pitch")

    @property
    def voice_count(self) -> int:
        return len(self.voices())

    def voices(self) -> list[int]:
        """Return the voices used by the track's chords, voice 0 always first."""
        return sorted({0} | {c.voice for c in self.chords})

    def update_pitch_stats(self) -> None:
        """Recompute min/max/mean pitch from the current chords."""
        pitches = np.array([n.pitch for c in self.chords for n in c.notes])
        if pitches.size == 0:
            self.min_pitch, self.max_pitch, self.mean_pitch = 127, 0, 0.0
            return
        self.min_pitch = int(pitches.min())
        self.max_pitch = int(pitches.max())
        self.mean_pitch = float(pitches.mean())
