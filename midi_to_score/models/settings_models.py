"""Parameter models for import configuration.

This module defines Pydantic models that encapsulate all configurable
parameters of the MIDI-to-score conversion. The heuristic constants
(jitter tolerance, octave span, quantization ladder) default to the values
the importer has always used; callers may tune them but the defaults are
what existing files were converted with.
"""

from enum import Enum

import pretty_midi
from pydantic import BaseModel, Field


class StemDirection(str, Enum):
    """Stem direction assigned to percussion notes."""

    AUTO = "auto"
    UP = "up"
    DOWN = "down"


class TrackOptions(BaseModel):
    """Per-track import switches.

    Attributes:
        do_import: Whether the track is imported at all.
        do_lh_rh_separation: Whether the track is split into left and right
            hand staves by the hand-separation heuristic.
    """

    do_import: bool = Field(True, description="Import this track")
    do_lh_rh_separation: bool = Field(
        False, description="Split this track into left/right hand"
    )


class DrumEntry(BaseModel):
    """One mapped percussion pitch.

    Attributes:
        name: Display name of the instrument (e.g. "Acoustic Snare").
        voice: Voice the pitch is notated in (0-3).
        stem: Stem direction of notes with this pitch.
    """

    name: str = Field("", description="Percussion instrument name")
    voice: int = Field(0, ge=0, le=3, description="Notation voice")
    stem: StemDirection = Field(StemDirection.UP, description="Stem direction")


class DrumMap(BaseModel):
    """Mapping of percussion pitches to voices and stem directions.

    Only pitches present in `entries` are considered valid; anything else
    is imported on the default voice and reported as unmapped.
    """

    entries: dict[int, DrumEntry] = Field(
        default_factory=dict, description="Mapped pitches"
    )

    def is_valid(self, pitch: int) -> bool:
        return pitch in self.entries

    def voice(self, pitch: int) -> int:
        entry = self.entries.get(pitch)
        return entry.voice if entry else 0

    def stem_direction(self, pitch: int) -> StemDirection:
        entry = self.entries.get(pitch)
        return entry.stem if entry else StemDirection.AUTO


# Bass drums and the pedal hi-hat are written below the other instruments
_LOWER_VOICE_PITCHES = {35, 36, 44}


def default_drum_map() -> DrumMap:
    """Build the General MIDI percussion map (pitches 35-81).

    Returns:
        A DrumMap where bass drums and the pedal hi-hat use voice 1 with
        stems down and every other instrument uses voice 0 with stems up.
    """
    entries = {}
    for pitch in range(35, 82):
        lower = pitch in _LOWER_VOICE_PITCHES
        entries[pitch] = DrumEntry(
            name=pretty_midi.note_number_to_drum_name(pitch),
            voice=1 if lower else 0,
            stem=StemDirection.DOWN if lower else StemDirection.UP,
        )
    return DrumMap(entries=entries)


class ImportParams(BaseModel):
    """Complete configuration for a MIDI import.

    Attributes:
        division: Internal resolution in ticks per quarter note (default 480).
        jitter_ticks: Onset/offset tolerance for chord merging (default 3).
        octave: Pitch span used by the hand-separation heuristic (default 12).
        ladder: Quantization grid rungs as fractions of a quarter note.
        use_dots: Allow dotted values when decomposing durations.
        drum_map: Percussion pitch mapping used for drum tracks.
        track_options: Options for each note-bearing track in file order.
            Tracks beyond the end of the list use the defaults.
    """

    division: int = Field(480, ge=24, description="Ticks per quarter note")
    jitter_ticks: int = Field(3, ge=0, description="Chord merge tolerance in ticks")
    octave: int = Field(12, ge=1, description="Hand-separation pitch span")
    ladder: list[float] = Field(
        default_factory=lambda: [1 / 16, 1 / 8, 1 / 4, 1 / 2, 1, 2, 4, 8],
        min_length=1,
        description="Quantization grid rungs in quarter notes",
    )
    use_dots: bool = Field(False, description="Allow dotted durations")
    drum_map: DrumMap = Field(
        default_factory=default_drum_map, description="Percussion mapping"
    )
    track_options: list[TrackOptions] = Field(
        default_factory=list, description="Per-track options in file order"
    )

    def options_for(self, track_index: int) -> TrackOptions:
        """Return the options of a note-bearing track, or the defaults."""
        if track_index < len(self.track_options):
            return self.track_options[track_index].model_copy()
        return TrackOptions()

    def ladder_ticks(self) -> list[int]:
        """Return the quantization rungs in ticks, finest first."""
        return sorted({max(1, int(self.division * rung)) for rung in self.ladder})
