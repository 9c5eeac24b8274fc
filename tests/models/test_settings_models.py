import pytest
from pydantic import ValidationError

from midi_to_score.models import (
    DrumEntry,
    DrumMap,
    ImportParams,
    StemDirection,
    TrackOptions,
    default_drum_map,
)


def test_import_params_defaults():
    params = ImportParams()
    assert params.division == 480
    assert params.jitter_ticks == 3
    assert params.octave == 12
    assert params.use_dots is False
    assert params.ladder_ticks() == [30, 60, 120, 240, 480, 960, 1920, 3840]


def test_ladder_ticks_sorted_and_unique():
    params = ImportParams(ladder=[1, 0.25, 1.0, 0.001])
    assert params.ladder_ticks() == [1, 120, 480]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"division": 0},
        {"jitter_ticks": -1},
        {"octave": 0},
        {"ladder": []},
    ],
)
def test_import_params_validation_raises(kwargs):
    with pytest.raises(ValidationError):
        ImportParams(**kwargs)


def test_options_for_falls_back_to_defaults():
    params = ImportParams(track_options=[TrackOptions(do_lh_rh_separation=True)])
    assert params.options_for(0).do_lh_rh_separation is True
    assert params.options_for(5) == TrackOptions()


def test_options_for_returns_copy():
    params = ImportParams(track_options=[TrackOptions()])
    options = params.options_for(0)
    options.do_import = False
    assert params.track_options[0].do_import is True


def test_default_drum_map():
    drums = default_drum_map()
    assert sorted(drums.entries) == list(range(35, 82))
    assert drums.voice(36) == 1
    assert drums.stem_direction(36) == StemDirection.DOWN
    assert drums.voice(38) == 0
    assert drums.stem_direction(42) == StemDirection.UP
    assert drums.entries[38].name == "Acoustic Snare"


def test_drum_map_unmapped_pitch():
    drums = DrumMap(entries={38: DrumEntry(name="Snare", voice=2)})
    assert drums.is_valid(38)
    assert not drums.is_valid(40)
    assert drums.voice(40) == 0
    assert drums.stem_direction(40) == StemDirection.AUTO


def test_drum_entry_voice_range():
    with pytest.raises(ValidationError):
        DrumEntry(voice=4)
