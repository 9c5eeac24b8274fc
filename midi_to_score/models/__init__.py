"""Domain models for the midi-to-score converter.

This module provides a centralized location for all data models used
throughout the MIDI-to-score conversion pipeline. It includes:

- Core domain models (RawEvent, Note, Chord, Track)
- Pipeline processing stage results (IngestResult, QuantizationResult, etc.)
- Configuration parameters for the import
- The score layout handed to the score sink

All models are built using Pydantic for data validation and serialization,
ensuring type safety and clear interfaces between pipeline components.
"""

# Re-export core models
from midi_to_score.models.core_models import (
    Chord,
    EventType,
    MetaKind,
    Note,
    RawEvent,
    Track,
    insert_chord,
)

# Re-export setting models
from midi_to_score.models.settings_models import (
    DrumEntry,
    DrumMap,
    ImportParams,
    StemDirection,
    TrackOptions,
    default_drum_map,
)

# Re-export pipeline models
from midi_to_score.models.pipeline_models import (
    ConversionResult,
    DurationValue,
    ImportedTrack,
    IngestResult,
    MeasureGrid,
    MetaDelta,
    NotatedChord,
    NotatedRest,
    PartPlan,
    QuantizationResult,
    ReconstructedTrack,
    ScoreLayout,
    StaffPlan,
    Tie,
)
