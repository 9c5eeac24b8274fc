"""
Pipeline processing functions for MIDI-to-score conversion.

This module wires the conversion stages together: ingestion, chord
hand separation, chord building, quantization, duration reconstruction and
assembly into a score sink. Only reading the file can fail; everything after
a successful parse is best effort and reports problems through logging.
"""

import io
import logging
from enum import Enum
from os import PathLike

import mido

from midi_to_score.assembly import ScoreSink, assemble, part_name, plan_layout
from midi_to_score.chords import find_chords
from midi_to_score.hands import separate_hands
from midi_to_score.ingestion import ingest
from midi_to_score.models import ConversionResult, ImportParams, ScoreLayout
from midi_to_score.quantizer import quantize_track
from midi_to_score.reconstruct import reconstruct_track

logger = logging.getLogger(__name__)


class FileError(Enum):
    """Outcome of importing a MIDI file."""

    NO_ERROR = "no_error"
    NOT_FOUND = "not_found"
    OPEN_ERROR = "open_error"
    BAD_FORMAT = "bad_format"


# Custom exceptions
class PipelineError(Exception):
    """Base exception for pipeline processing errors."""

    code = FileError.BAD_FORMAT


class InputError(PipelineError):
    """Exception raised when the input file cannot be used."""

    pass


class MidiNotFoundError(InputError):
    """No file name was given or the file does not exist."""

    code = FileError.NOT_FOUND


class MidiOpenError(InputError):
    """The file exists but cannot be opened for reading."""

    code = FileError.OPEN_ERROR


class MidiFormatError(InputError):
    """The file could be read but is not a valid MIDI file."""

    code = FileError.BAD_FORMAT


def load_midi_file(path: str | PathLike | None) -> mido.MidiFile:
    """Read and parse a MIDI file.

    Args:
        path: Path of the file.

    Returns:
        The parsed file.

    Raises:
        MidiNotFoundError: `path` is empty or does not exist.
        MidiOpenError: `path` cannot be opened (a directory, no permission).
        MidiFormatError: The contents are not a valid MIDI file.
    """
    if not path:
        raise MidiNotFoundError("No file name given")
    try:
        with open(path, "rb") as fp:
            data = fp.read()
    except FileNotFoundError as e:
        raise MidiNotFoundError(f"File not found: {path}") from e
    except OSError as e:
        raise MidiOpenError(f"File open error <{path}>: {e}") from e

    try:
        midi_file = mido.MidiFile(file=io.BytesIO(data))
    except (OSError, EOFError, ValueError, KeyError, IndexError) as e:
        raise MidiFormatError(f"Bad file format <{path}>: {e}") from e
    if midi_file.ticks_per_beat <= 0:
        raise MidiFormatError(f"Unsupported division {midi_file.ticks_per_beat}")
    return midi_file


def convert_midi(
    midi_file: mido.MidiFile, sink: ScoreSink, params: ImportParams | None = None
) -> ConversionResult:
    """Convert a parsed MIDI file into a score.

    Hands are separated on the single-note chords of ingestion, so a block
    chord struck by both hands can still be divided; chord building and
    quantization then run on each output track. The sink is only prepared
    once the layout is known, and from then on it resolves ticks to measures
    for the reconstructor.

    Args:
        midi_file: Parsed MIDI file.
        sink: Destination score.
        params: Import configuration; defaults are used when None.

    Returns:
        ConversionResult with the layout and the reconstructed tracks.
    """
    params = params or ImportParams()
    ingest_result = ingest(midi_file, params)
    time_sigs = ingest_result.time_sigs
    ladder = params.ladder_ticks()

    # Step 1: Hand separation rebuilds the track list
    tracks = separate_hands(ingest_result.tracks, params.octave)

    # Step 2: Chords and quantization, track by track
    for imported in tracks:
        track = imported.track
        track.chords = find_chords(track, params.drum_map, params.jitter_ticks)
        quantized = quantize_track(track.chords, time_sigs, ingest_result.last_tick, ladder)
        track.chords = quantized.chords
        track.update_pitch_stats()

    # Step 3: Measures cover everything that sounds after quantization
    end_tick = max(
        [ingest_result.last_tick]
        + [c.offset_tick for t in tracks for c in t.track.chords]
    )
    layout = plan_layout(
        [t.track for t in tracks],
        time_sigs.measures(end_tick),
        ScoreLayout(division=params.division, time_sigs=time_sigs),
    )
    sink.prepare(layout)

    # Step 4: Written durations, rests and ties
    reconstructed = [
        reconstruct_track(
            t.track,
            layout.end_tick,
            sink.measure_at,
            division=params.division,
            use_dots=params.use_dots,
            drum_map=params.drum_map,
        )
        for t in tracks
    ]

    # Step 5: Hand everything to the score
    assemble(sink, layout, tracks, reconstructed, ingest_result)
    return ConversionResult(layout=layout, tracks=reconstructed)


def import_midi(
    path: str | PathLike | None, sink: ScoreSink, params: ImportParams | None = None
) -> FileError:
    """Import a MIDI file into a score sink.

    Args:
        path: Path of the MIDI file.
        sink: Destination score; untouched unless the file parses.
        params: Import configuration; defaults are used when None.

    Returns:
        FileError.NO_ERROR on success, otherwise the reason the file could
        not be read.
    """
    try:
        midi_file = load_midi_file(path)
    except InputError as e:
        logger.error(f"importMidi: {e}")
        return e.code

    convert_midi(midi_file, sink, params)
    return FileError.NO_ERROR


def extract_instrument_names(
    path: str | PathLike | None, params: ImportParams | None = None
) -> list[str]:
    """List the instrument name of every track that would be imported.

    Args:
        path: Path of the MIDI file.
        params: Import configuration; `track_options` decide which tracks
            are imported.

    Returns:
        One name per imported track (track name, else General MIDI program
        name), or an empty list if the file cannot be read.
    """
    try:
        midi_file = load_midi_file(path)
    except InputError as e:
        logger.debug(f"Cannot extract instruments: {e}")
        return []
    ingest_result = ingest(midi_file, params)
    return [part_name(t.track) or "-" for t in ingest_result.tracks]
