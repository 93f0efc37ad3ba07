from __future__ import annotations

import pytest

from mmlcodec.errors import MalformedScoreError
from mmlcodec.score_format import parse_score, render_score
from mmlcodec.structures import ScoreBlock, ScoreMeta


def test_render_then_parse_preserves_blocks() -> None:
    meta = ScoreMeta(total_ticks=1920, ppq=480, players=2, split="sequential", bpm=96)
    blocks = [
        ScoreBlock(melody="t96v13o4l32c4", chord1="v12o3l16e4", chord2="v13o2l16c4", segment_ticks=960),
        ScoreBlock(melody="v13o4l32d4", chord1="v12o3l16f4", chord2="v13o2l16d4", segment_ticks=960),
    ]
    text = render_score(meta, blocks)

    assert text.startswith("#META totalTicks=1920 ppq=480 players=2 split=sequential bpm=96\n")
    assert "[Player 2]" in text
    assert "Melody: 13" in text
    parsed_meta, parsed_blocks = parse_score(text)
    assert parsed_meta == meta
    assert parsed_blocks == blocks


def test_labelled_blocks_are_a_fallback() -> None:
    text = "Melody: 10\nv12o4l4cde\nChord1: 6\nv12o3c\nChord2: 6\nv12o2c\n"
    meta, blocks = parse_score(text)
    assert blocks == [ScoreBlock(melody="v12o4l4cde", chord1="v12o3c", chord2="v12o2c")]
    assert meta.players == 1
    assert meta.ppq == 480
    assert meta.split == "sequential"


def test_mml_block_line_breaks_and_extra_commas() -> None:
    _, blocks = parse_score("MML@v12c\nde,v10e,v9c,g;")
    assert blocks == [ScoreBlock(melody="v12cde", chord1="v10e", chord2="v9c,g")]


def test_missing_structure_raises() -> None:
    with pytest.raises(MalformedScoreError):
        parse_score("just some notes cdefg")
    with pytest.raises(MalformedScoreError):
        parse_score("MML@cde,efg;")
    with pytest.raises(MalformedScoreError):
        parse_score("")


def test_unknown_split_falls_back_to_sequential() -> None:
    meta, _ = parse_score("#META ppq=96 split=diagonal\nMML@c,e,g;")
    assert meta.split == "sequential"
    assert meta.ppq == 96
    assert meta.bpm == 120
