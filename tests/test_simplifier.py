from __future__ import annotations

from mmlcodec.simplifier import simplify_sequence
from mmlcodec.voice_mode import VoiceMode


def test_level_zero_is_identity() -> None:
    sequence = (60, 62, None, 64)
    assert simplify_sequence(sequence, VoiceMode.MELODY, 0) == sequence


def test_short_spike_between_equal_neighbours() -> None:
    sequence = (60, 60, 60, 62, 60, 60, 60)
    assert simplify_sequence(sequence, VoiceMode.MELODY, 1) == (60,) * 7


def test_short_rest_between_equal_neighbours_is_filled() -> None:
    assert simplify_sequence((60, 60, None, 60, 60), VoiceMode.MELODY, 1) == (60,) * 5


def test_short_rest_between_different_neighbours_stays() -> None:
    sequence = (60, 60, None, 64, 64)
    assert simplify_sequence(sequence, VoiceMode.MELODY, 1) == sequence


def test_short_pitch_takes_nearer_neighbour() -> None:
    assert simplify_sequence((60, 60, 61, 67, 67), VoiceMode.MELODY, 1) == (60, 60, 60, 67, 67)


def test_harmony_threshold_is_wider_than_melody() -> None:
    sequence = (48, 48, 48, 50, 50, 48, 48, 48)
    assert simplify_sequence(sequence, VoiceMode.MELODY, 1) == sequence
    assert simplify_sequence(sequence, VoiceMode.UPPER, 1) == (48,) * 8
