from __future__ import annotations

import pytest

from mmlcodec.decoder import decode_part
from mmlcodec.run_encoder import (
    build_encoded_part,
    clip_part_to_ticks,
    encode_runs,
    is_note_onset,
    normalize_runs,
    runs_to_sequence,
    sequence_to_runs,
    truncate_tokens,
)
from mmlcodec.structures import Run


def test_runs_partition_sequence() -> None:
    sequence = (None, 60, 60, 62, None, None, 62)
    runs = sequence_to_runs(sequence)

    assert runs[0].start == 0
    assert runs[-1].end == len(sequence)
    for left, right in zip(runs, runs[1:]):
        assert left.end == right.start
        assert left.value != right.value
    assert [run.value for run in runs] == [None, 60, 62, None, 62]
    assert runs_to_sequence(runs, len(sequence)) == sequence


def test_sequence_to_runs_empty() -> None:
    assert sequence_to_runs(()) == []


def test_normalize_runs_drops_trailing_rests() -> None:
    runs = [Run(60, 0, 4), Run(None, 4, 8)]
    assert normalize_runs(runs, 32) == [Run(60, 0, 4)]
    assert normalize_runs(runs, 32, keep_trailing_rests=True) == runs


def test_normalize_runs_never_empty() -> None:
    assert normalize_runs([Run(None, 0, 8)], 32) == [Run(None, 0, 32)]


def test_encode_runs_header_and_note() -> None:
    tokens, steps = encode_runs([Run(60, 0, 8)], 32, tempo=120, volume=12, include_tempo=True)
    assert tokens == ["t120", "v12", "o4", "l32", "c4"]
    assert steps == [0, 0, 0, 0, 8]


def test_encode_runs_octave_shift_tie_and_rest() -> None:
    runs = [Run(60, 0, 40), Run(None, 40, 41), Run(72, 41, 49), Run(59, 49, 50)]
    tokens, steps = encode_runs(runs, 32, tempo=120, volume=10, include_tempo=False)

    assert tokens[:3] == ["v10", "o4", "l32"]
    assert tokens[3:] == ["c1", "&c4", "r", ">c4", "<<b"]
    assert steps[3:] == [32, 8, 1, 8, 1]


def test_duration_round_trip_through_decoder() -> None:
    lengths = [1, 3, 5, 7, 11, 13, 40, 57, 130, 250]
    runs = []
    position = 0
    for index, length in enumerate(lengths):
        value = None if index % 3 == 2 else 60 + index
        runs.append(Run(value, position, position + length))
        position += length

    tokens, _ = encode_runs(runs, 32, tempo=120, volume=12, include_tempo=False)
    decoded = decode_part("".join(tokens))

    steps_per_quarter = 8
    pitched = [run for run in runs if run.value is not None]
    assert len(decoded.events) == len(pitched)
    for run, event in zip(pitched, decoded.events):
        assert event.pitch == run.value
        assert event.start_beat * steps_per_quarter == pytest.approx(run.start)
        assert event.duration_beats * steps_per_quarter == pytest.approx(run.length)
    assert decoded.total_beats * steps_per_quarter == pytest.approx(position)


def test_is_note_onset() -> None:
    assert is_note_onset("c4")
    assert is_note_onset(">>f+8.")
    assert not is_note_onset("&c4")
    assert not is_note_onset("r4")
    assert not is_note_onset("v12")


def test_truncate_tokens_keeps_whole_tokens() -> None:
    tokens = ["v12", "o4", "c4", "d4"]
    assert truncate_tokens(tokens, 6) == 2
    assert truncate_tokens(tokens, 7) == 3
    assert truncate_tokens(tokens, 100) == 4
    assert truncate_tokens(tokens, 0) == 0


def test_build_encoded_part_truncates() -> None:
    tokens = ["v12", "o4", "l4", "c", "d", "e"]
    steps = [0, 0, 0, 1, 1, 1]
    part = build_encoded_part(tokens, steps, step_ticks=480, steps_per_quarter=1, limit=8)

    assert part.text == "v12o4l4c"
    assert part.truncated
    assert part.note_event_count == 1
    assert part.retained_end_ticks == 480


def test_clip_part_to_ticks() -> None:
    tokens = ["v12", "o4", "l4", "c", "d", "e", "f"]
    part = build_encoded_part(tokens, [0, 0, 0, 1, 1, 1, 1], step_ticks=480, steps_per_quarter=1)
    assert not part.truncated

    clipped = clip_part_to_ticks(part, 1000)
    assert clipped.text == "v12o4l4cd"
    assert clipped.retained_end_ticks == 960
    assert clipped.note_event_count == 2
    assert clipped.truncated

    assert clip_part_to_ticks(part, 5000) is part
