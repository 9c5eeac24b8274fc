import pytest

from midi_to_score.models import Chord, Note


@pytest.fixture
def valid_note():
    return Note(pitch=60, velocity=80, onset_tick=0, length_ticks=480)


@pytest.fixture
def valid_chord():
    return Chord(
        onset_tick=480,
        duration_ticks=240,
        notes=[
            Note(pitch=67, onset_tick=480, length_ticks=240),
            Note(pitch=60, onset_tick=480, length_ticks=240),
            Note(pitch=64, onset_tick=480, length_ticks=240),
        ],
    )
