"""MIDI-to-score conversion library.

This package turns a Standard MIDI File into notated music: chords with
legal written durations, rests, ties, staves and signatures. The result is
pushed into any object implementing the `ScoreSink` protocol; a music21
implementation is included.

The main processing pipeline consists of:
1. Event ingestion (resolution normalization, channel separation, meta events)
2. Chord building from near-simultaneous notes
3. Adaptive per-measure quantization
4. Optional left/right hand separation
5. Duration reconstruction into notes, rests and ties
6. Score assembly through the sink

Example:
    Basic usage through the pipeline API:

    >>> from midi_to_score.music21_sink import Music21Score
    >>> from midi_to_score.pipeline import FileError, import_midi
    >>>
    >>> score = Music21Score()
    >>> if import_midi("song.mid", score) == FileError.NO_ERROR:
    ...     score.write("musicxml", fp="song.musicxml")
"""
