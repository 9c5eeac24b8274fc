import logging

import pytest

from midi_to_score.models import ImportParams
from midi_to_score.quantizer import (
    halve_len,
    measure_raster,
    quantize_len,
    quantize_measure,
    quantize_track,
    resolve_overlaps,
    select_div,
    snap_onset,
)

LADDER = ImportParams().ladder_ticks()


@pytest.mark.parametrize(
    "length, raster, expected",
    [(100, 30, 90), (10, 30, 30), (105, 30, 120), (480, 240, 480), (7, 0, 7)],
)
def test_quantize_len(length, raster, expected):
    assert quantize_len(length, raster) == expected


def test_halve_len():
    assert halve_len(60, 30) == 30
    assert halve_len(480, 240) == 240
    assert halve_len(100, 60) == 60


@pytest.mark.parametrize(
    "shortest, expected", [(10, 30), (60, 60), (61, 120), (480, 480), (5000, 3840)]
)
def test_select_div(shortest, expected):
    assert select_div(shortest, LADDER) == expected


def test_measure_raster():
    assert measure_raster(60, LADDER) == (60, 30)
    assert measure_raster(480, LADDER) == (480, 240)
    # the finest rung is used as is
    assert measure_raster(10, LADDER) == (30, 30)


def test_snap_onset():
    assert snap_onset(59, 30) == 60
    assert snap_onset(121, 30) == 120
    assert snap_onset(14, 30) == 0


def test_sixteenths_snap_to_raster_30(make_chord):
    chords = [make_chord(59, 60, [60]), make_chord(121, 60, [62])]
    result, grid = quantize_measure(chords, 0, 1920, LADDER)
    assert grid.raster == 30
    assert grid.div == 60
    assert [c.onset_tick for c in result] == [60, 120]
    assert [c.duration_ticks for c in result] == [60, 60]


def test_quantize_measure_rewrites_notes(make_chord):
    chords = [make_chord(7, 60, [60, 64]), make_chord(130, 470, [67])]
    result, _ = quantize_measure(chords, 0, 1920, LADDER)
    assert [(c.onset_tick, c.duration_ticks) for c in result] == [(0, 60), (120, 480)]
    for chord in result:
        for note in chord.notes:
            assert (note.onset_tick, note.length_ticks) == (
                chord.onset_tick,
                chord.duration_ticks,
            )
    # the input is left alone
    assert chords[0].onset_tick == 7


def test_quantize_measure_empty(make_chord):
    assert quantize_measure([make_chord(2000, 60, [60])], 0, 1920, LADDER) == ([], None)


def test_resolve_overlaps_truncates(make_chord):
    chords = [make_chord(0, 480, [60]), make_chord(240, 240, [60, 64])]
    kept, dropped = resolve_overlaps(chords)
    assert dropped == 0
    assert kept[0].duration_ticks == 240
    assert kept[0].notes[0].length_ticks == 240


def test_resolve_overlaps_drops_empty_chords(make_chord, caplog):
    chords = [make_chord(0, 480, [62]), make_chord(0, 240, [62])]
    with caplog.at_level(logging.WARNING):
        kept, dropped = resolve_overlaps(chords)
    assert dropped == 1
    assert [c.duration_ticks for c in kept] == [240]
    assert "Duration <= 0" in caplog.text


def test_resolve_overlaps_respects_voices(make_chord):
    chords = [make_chord(0, 480, [60], voice=0), make_chord(240, 240, [60], voice=1)]
    kept, _ = resolve_overlaps(chords)
    assert kept[0].duration_ticks == 480


def test_quantize_track(make_chord, time_sigs):
    chords = [
        make_chord(3, 470, [60]),
        make_chord(475, 490, [62]),
        make_chord(1925, 110, [64]),
        make_chord(2050, 130, [64]),
        make_chord(2170, 1200, [65]),
    ]
    result = quantize_track(chords, time_sigs, 3370, LADDER)

    assert len(result.grids) == 2
    for chord in result.chords:
        grid = result.grid_at(chord.onset_tick)
        assert chord.onset_tick % grid.raster == 0
        assert chord.duration_ticks % grid.raster == 0
        assert chord.duration_ticks >= grid.raster

    onsets = [c.onset_tick for c in result.chords]
    assert onsets == sorted(onsets)

    for i, a in enumerate(result.chords):
        for b in result.chords[i + 1 :]:
            if a.voice == b.voice and a.pitches & b.pitches:
                assert b.onset_tick >= a.offset_tick
