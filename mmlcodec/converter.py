from __future__ import annotations

from dataclasses import replace
from typing import List, Sequence

from .constants import DEFAULT_BPM, DEFAULT_PPQ, SPLIT_MODES, SPLIT_PARALLEL, SPLIT_SEQUENTIAL
from .decoder import decode_score
from .ensemble import plan_parallel, plan_sequential, render_segments
from .logger_config import logger
from .midi_utils import normalize_tempo, slice_notes_by_range
from .pools import build_part_pools, merge_track_notes
from .score_format import render_score
from .search import build_score_parts
from .structures import ConversionResult, EnsembleSegment, ScoreBlock, ScoreMeta, Track
from .tuning import DEFAULT_TUNING, CodecTuning
from .voice_classifier import classify_voices, collect_voice_stats, usable_voices

__all__ = ["convert_tracks", "cut_tracks", "decode_score"]


def _validate(ppq: int, players: int, split: str) -> None:
    if ppq <= 0:
        raise ValueError(f"ppq must be positive, got {ppq}")
    if players < 1:
        raise ValueError(f"players must be at least 1, got {players}")
    if split not in SPLIT_MODES:
        raise ValueError(f"Unknown split mode: {split!r}")


def convert_tracks(
    tracks: Sequence[Track],
    ppq: int = DEFAULT_PPQ,
    bpm: float = DEFAULT_BPM,
    players: int = 1,
    split: str = SPLIT_SEQUENTIAL,
    compress: bool = False,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> ConversionResult:
    _validate(ppq, players, split)
    tempo = normalize_tempo(bpm)

    roles = classify_voices(tracks, ppq, tuning)
    pools = build_part_pools(roles, tuning)
    total_ticks = max(1, pools.end_tick)

    if players == 1:
        parts = build_score_parts(
            pools.melody,
            pools.upper,
            pools.lower,
            tempo=tempo,
            ppq=ppq,
            compress=compress,
            strict_prefix=True,
            tuning=tuning,
        )
        segments: List[EnsembleSegment] = [
            EnsembleSegment(
                start_tick=0,
                end_tick=total_ticks,
                melody_notes=pools.melody,
                upper_notes=pools.upper,
                lower_notes=pools.lower,
            )
        ]
        rendered = [parts]
    elif split == SPLIT_PARALLEL:
        notes = merge_track_notes(usable_voices(collect_voice_stats(tracks)))
        segments = plan_parallel(notes, players, tempo, ppq, tuning)
        total_ticks = max(total_ticks, segments[0].end_tick)
        rendered = render_segments(segments, tempo, ppq, compress, align_across=True, tuning=tuning)
    else:
        segments = plan_sequential(pools, players, ppq, tuning)
        rendered = render_segments(segments, tempo, ppq, compress, tuning=tuning)

    meta = ScoreMeta(total_ticks=total_ticks, ppq=ppq, players=players, split=split, bpm=tempo)
    blocks = [
        ScoreBlock(
            melody=parts.melody.text,
            chord1=parts.chord1.text,
            chord2=parts.chord2.text,
            segment_ticks=segment.length_ticks,
        )
        for parts, segment in zip(rendered, segments)
    ]
    text = render_score(meta, blocks)

    result = ConversionResult(text=text, meta=meta, players=tuple(rendered), segments=tuple(segments))
    logger.info(
        "Converted %d track(s): players=%d split=%s compress=%s ticks=%d lengths=%s",
        len(tracks),
        players,
        split,
        compress,
        total_ticks,
        result.part_lengths(),
    )
    return result


def cut_tracks(tracks: Sequence[Track], start_tick: int, end_tick: int) -> List[Track]:
    """Keep ``[start_tick, end_tick)`` of every track, re-based to tick 0."""
    if end_tick <= start_tick:
        raise ValueError(f"Invalid tick range: start={start_tick} end={end_tick}")
    start_tick = max(0, start_tick)
    return [replace(track, notes=tuple(slice_notes_by_range(track.notes, start_tick, end_tick))) for track in tracks]
