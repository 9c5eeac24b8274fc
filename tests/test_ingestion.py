import logging

import mido
import pytest

from midi_to_score.ingestion import (
    build_track,
    ingest,
    merge_note_on_off,
    normalize_tick,
    separate_channels,
    to_raw_event,
)
from midi_to_score.models import EventType, ImportParams, MetaKind, RawEvent, TrackOptions


def on(pitch, tick, channel=0, velocity=64):
    return RawEvent(tick=tick, type=EventType.NOTE_ON, channel=channel, pitch=pitch, velocity=velocity)


def off(pitch, tick, channel=0):
    return RawEvent(tick=tick, type=EventType.NOTE_OFF, channel=channel, pitch=pitch)


@pytest.mark.parametrize(
    "tick, source, expected",
    [(96, 96, 480), (1, 960, 1), (3, 1000, 1), (480, 480, 480), (0, 384, 0)],
)
def test_normalize_tick(tick, source, expected):
    assert normalize_tick(tick, source) == expected


def test_to_raw_event():
    event = to_raw_event(mido.Message("note_on", note=60, velocity=0), 10)
    assert event.type == EventType.NOTE_OFF
    program = to_raw_event(mido.Message("program_change", program=19, channel=3), 0)
    assert (program.type, program.program, program.channel) == (EventType.PROGRAM, 19, 3)
    assert to_raw_event(mido.Message("control_change", control=7, value=100), 0) is None
    assert to_raw_event(mido.MetaMessage("end_of_track"), 0) is None


def test_to_raw_event_meta():
    key = to_raw_event(mido.MetaMessage("key_signature", key="Eb"), 0)
    assert (key.meta_kind, key.key_accidentals) == (MetaKind.KEY_SIGNATURE, -3)
    tempo = to_raw_event(mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(90)), 0)
    assert tempo.tempo_bpm == pytest.approx(90.0)
    title = to_raw_event(mido.UnknownMetaMessage(type_byte=0x08, data=b"Prelude"), 0)
    assert (title.meta_kind, title.text) == (MetaKind.TITLE, "Prelude")


def test_merge_note_on_off_pairs_oldest_first():
    notes = merge_note_on_off([on(60, 0), on(60, 100), off(60, 200), off(60, 300)])
    assert [(n.onset_tick, n.length_ticks) for n in notes] == [(0, 200), (100, 200)]


def test_merge_note_on_off_closes_dangling_notes(caplog):
    with caplog.at_level(logging.WARNING):
        notes = merge_note_on_off([on(62, 0), on(60, 0), off(60, 480)])
    dangling = [n for n in notes if n.pitch == 62]
    assert dangling[0].length_ticks == 480
    assert "dangling" in caplog.text


def test_merge_note_on_off_ignores_stray_note_off():
    notes = merge_note_on_off([off(60, 0), on(60, 10), off(60, 20)])
    assert len(notes) == 1


def test_separate_channels():
    mid = mido.MidiFile(ticks_per_beat=240)
    track = mido.MidiTrack()
    track.append(mido.MetaMessage("track_name", name="Mixed", time=0))
    track.append(mido.Message("note_on", note=60, channel=1, time=0))
    track.append(mido.Message("note_on", note=40, channel=3, time=0))
    track.append(mido.Message("note_off", note=60, channel=1, time=240))
    track.append(mido.Message("note_off", note=40, channel=3, time=240))
    mid.tracks.append(track)

    separated, last_tick = separate_channels(mid)
    assert len(separated) == 2
    assert last_tick == 960
    assert separated[0][0].meta_kind == MetaKind.TRACK_NAME
    assert {e.channel for e in separated[1]} == {3}
    assert all(e.track == 1 for e in separated[1])


def test_build_track_uses_last_program():
    events = [
        RawEvent(tick=0, type=EventType.PROGRAM, channel=9, program=5),
        RawEvent(tick=0, type=EventType.PROGRAM, channel=9, program=8),
        on(38, 0, channel=9),
        off(38, 120, channel=9),
    ]
    track = build_track(events, merge_note_on_off(events))
    assert track.program == 8
    assert track.is_drum
    assert len(track.chords) == 1


def test_ingest_melody(melody_file):
    result = ingest(melody_file)
    assert len(result.tracks) == 1
    track = result.tracks[0].track
    assert track.name == "Melody"
    assert track.program == 40
    assert [c.onset_tick for c in track.chords] == [0, 480, 960]
    assert result.last_tick == 1920
    assert result.tempo_map == {0: pytest.approx(120.0)}
    assert result.metadata == {"copyright": "(c) Test"}
    assert result.time_sigs.timesig_at(0) == (4, 4)


def test_ingest_normalizes_resolution():
    mid = mido.MidiFile(ticks_per_beat=96)
    track = mido.MidiTrack()
    track.append(mido.Message("note_on", note=60, time=48))
    track.append(mido.Message("note_off", note=60, time=96))
    mid.tracks.append(track)

    chord = ingest(mid).tracks[0].track.chords[0]
    assert (chord.onset_tick, chord.duration_ticks) == (240, 480)


def test_ingest_conductor_track():
    mid = mido.MidiFile(ticks_per_beat=480)
    conductor = mido.MidiTrack()
    conductor.append(mido.MetaMessage("key_signature", key="D", time=0))
    conductor.append(mido.MetaMessage("time_signature", numerator=3, denominator=4, time=0))
    conductor.append(mido.MetaMessage("key_signature", key="F", time=2880))
    mid.tracks.append(conductor)
    voice = mido.MidiTrack()
    voice.append(mido.MetaMessage("lyrics", text="Ah", time=0))
    voice.append(mido.Message("note_on", note=67, time=0))
    voice.append(mido.Message("note_off", note=67, time=480))
    mid.tracks.append(voice)

    result = ingest(mid)
    assert len(result.tracks) == 1
    assert result.key_map == {0: 2, 2880: -1}
    assert result.tracks[0].key_map == {}
    assert result.tracks[0].lyrics == [(0, "Ah")]
    assert result.time_sigs.timesig_at(0) == (3, 4)


def test_out_of_range_key_signature_is_read_and_dropped(bad_key_path, caplog):
    mid = mido.MidiFile(str(bad_key_path))
    key = next(msg for msg in mid.tracks[0] if msg.type == "key_signature")
    assert key.key == 9
    assert to_raw_event(mido.MetaMessage("key_signature", key=-8), 0).key_accidentals == -8

    with caplog.at_level(logging.WARNING):
        result = ingest(mid)
    assert "Illegal key signature 9 at tick 0" in caplog.text
    assert result.key_map == {}
    assert result.tracks[0].key_map == {}
    assert len(result.tracks[0].track.chords) == 1


def test_ingest_track_options(melody_file):
    params = ImportParams(track_options=[TrackOptions(do_import=False)])
    assert ingest(melody_file, params).tracks == []

    params = ImportParams(track_options=[TrackOptions(do_lh_rh_separation=True)])
    assert ingest(melody_file, params).tracks[0].track.options.do_lh_rh_separation
