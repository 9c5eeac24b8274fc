from midi_to_score.durations import legal_values, split_at_barlines, to_duration_list


def test_legal_values_at_480():
    assert [v.ticks for v in legal_values(480)] == [
        3840, 1920, 960, 480, 240, 120, 60, 30, 15
    ]
    assert legal_values(480)[3].type == "quarter"


def test_legal_values_with_dots_skip_fractional_ticks():
    values = legal_values(480, True)
    dotted = [v.ticks for v in values if v.dots == 1]
    assert 720 in dotted
    # a dotted 128th would be 22.5 ticks
    assert min(dotted) == 45
    assert all(a.ticks >= b.ticks for a, b in zip(values, values[1:]))


def test_to_duration_list_greedy():
    values = to_duration_list(720)
    assert [(v.ticks, v.type) for v in values] == [(480, "quarter"), (240, "eighth")]


def test_to_duration_list_with_dots():
    values = to_duration_list(720, 480, True)
    assert [(v.ticks, v.type, v.dots) for v in values] == [(720, "quarter", 1)]


def test_to_duration_list_preserves_length():
    for ticks in (15, 30, 450, 1890, 3840, 5745):
        assert sum(v.ticks for v in to_duration_list(ticks)) == ticks


def test_to_duration_list_too_short():
    assert to_duration_list(10) == ()


def test_split_at_barlines(time_sigs):
    assert split_at_barlines(1700, 700, time_sigs) == [(1700, 220), (1920, 480)]
    assert split_at_barlines(0, 480, time_sigs) == [(0, 480)]


def test_split_at_barlines_across_time_signature_change(time_sigs):
    time_sigs.add(1920, 3, 4)
    pieces = split_at_barlines(1440, 2400, time_sigs)
    assert pieces == [(1440, 480), (1920, 1440), (3360, 480)]
    assert sum(length for _, length in pieces) == 2400
