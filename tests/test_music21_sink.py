from music21 import layout as m21layout
from music21 import stream

from midi_to_score.models import ImportParams, TrackOptions
from midi_to_score.music21_sink import Music21Score
from midi_to_score.pipeline import FileError, convert_midi, import_midi


def test_melody_score(midi_path):
    score = Music21Score()
    assert import_midi(midi_path, score) == FileError.NO_ERROR

    parts = list(score.score.getElementsByClass(stream.Part))
    assert len(parts) == 1
    assert parts[0].partName == "Melody"
    notes = list(score.score.recurse().notes)
    assert [n.pitch.midi for n in notes] == [60, 64, 67]
    assert [n.duration.quarterLength for n in notes] == [1.0, 1.0, 2.0]
    assert score.score.metadata.copyright is not None


def test_piano_score_has_brace_and_ties(piano_file):
    params = ImportParams(track_options=[TrackOptions(do_lh_rh_separation=True)])
    score = Music21Score()
    convert_midi(piano_file, score, params)

    parts = list(score.score.getElementsByClass(stream.Part))
    assert len(parts) == 2
    groups = list(score.score.getElementsByClass(m21layout.StaffGroup))
    assert len(groups) == 1
    assert groups[0].symbol == "brace"

    right = list(parts[0].recurse().notes)
    assert [n.tie.type for n in right] == ["start", "stop"]
    measures = list(parts[0].getElementsByClass(stream.Measure))
    assert [m.number for m in measures] == [1, 2]

    rests = list(parts[1].recurse().getElementsByClass("Rest"))
    assert any(r.fullMeasure is True for r in rests)
