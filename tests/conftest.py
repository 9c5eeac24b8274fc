import mido
import pytest

from midi_to_score.models import Chord, Note, Track, insert_chord
from midi_to_score.timesig import TimeSigMap


def _chord(onset, duration, pitches, voice=0):
    return Chord(
        voice=voice,
        onset_tick=onset,
        duration_ticks=duration,
        notes=[Note(pitch=p, onset_tick=onset, length_ticks=duration) for p in pitches],
    )


@pytest.fixture
def make_chord():
    return _chord


@pytest.fixture
def make_track():
    def factory(chords, **kwargs):
        track = Track(**kwargs)
        for chord in chords:
            insert_chord(track.chords, chord)
        track.update_pitch_stats()
        return track

    return factory


@pytest.fixture
def time_sigs():
    # 4/4 throughout, 1920 ticks per measure
    return TimeSigMap()


@pytest.fixture
def melody_file():
    # One track: C4 quarter, E4 quarter, G4 half at 120 BPM in 4/4
    mid = mido.MidiFile(ticks_per_beat=480)
    track = mido.MidiTrack()
    track.append(mido.MetaMessage("track_name", name="Melody", time=0))
    track.append(mido.MetaMessage("copyright", text="(c) Test", time=0))
    track.append(mido.MetaMessage("set_tempo", tempo=500000, time=0))
    track.append(mido.MetaMessage("time_signature", numerator=4, denominator=4, time=0))
    track.append(mido.Message("program_change", program=40, channel=0, time=0))
    track.append(mido.Message("note_on", note=60, velocity=80, time=0))
    track.append(mido.Message("note_off", note=60, velocity=0, time=480))
    track.append(mido.Message("note_on", note=64, velocity=80, time=0))
    track.append(mido.Message("note_off", note=64, velocity=0, time=480))
    track.append(mido.Message("note_on", note=67, velocity=80, time=0))
    track.append(mido.Message("note_off", note=67, velocity=0, time=960))
    mid.tracks.append(track)
    return mid


@pytest.fixture
def piano_file():
    # One track with a bass note followed by a melody note, the melody
    # note held across the barline
    mid = mido.MidiFile(ticks_per_beat=480)
    track = mido.MidiTrack()
    track.append(mido.Message("note_on", note=40, velocity=70, time=0))
    track.append(mido.Message("note_off", note=40, velocity=0, time=960))
    track.append(mido.Message("note_on", note=72, velocity=70, time=0))
    track.append(mido.Message("note_off", note=72, velocity=0, time=1920))
    mid.tracks.append(track)
    return mid


@pytest.fixture
def midi_path(tmp_path, melody_file):
    path = tmp_path / "melody.mid"
    melody_file.save(str(path))
    return path


@pytest.fixture
def bad_key_path(tmp_path):
    # Format 0 file whose key signature claims nine sharps
    events = bytes(
        [0x00, 0xFF, 0x59, 0x02, 0x09, 0x00]
        + [0x00, 0x90, 0x3C, 0x50]
        + [0x83, 0x60, 0x80, 0x3C, 0x00]
        + [0x00, 0xFF, 0x2F, 0x00]
    )
    header = b"MThd" + (6).to_bytes(4, "big") + bytes([0, 0, 0, 1, 0x01, 0xE0])
    track = b"MTrk" + len(events).to_bytes(4, "big") + events
    path = tmp_path / "bad_key.mid"
    path.write_bytes(header + track)
    return path
