from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from .constants import BEATS_PER_BAR, PART_CHORD1, PART_CHORD2, PART_LIMITS, SCORE_EPSILON
from .logger_config import logger
from .midi_utils import map_volume, slice_notes_by_range
from .pools import PartPools
from .search import align_parts, build_score_parts, encode_part
from .structures import EnsembleSegment, NoteEvent, ScoreParts, VoiceStats
from .tuning import DEFAULT_TUNING, CodecTuning
from .utils import ceil_div, clamp
from .voice_assignment import separate_voices
from .voice_classifier import summarize_voice
from .voice_mode import PART_MODES


def slice_costs(
    notes: Sequence[NoteEvent],
    total_ticks: int,
    ppq: int,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> List[float]:
    beat = max(1, ppq)
    slice_count = max(1, ceil_div(total_ticks, beat))
    costs = [0.0] * slice_count
    for note in notes:
        first = min(slice_count - 1, note.start_tick // beat)
        last = min(slice_count - 1, max(first, (note.end_tick - 1) // beat))
        costs[first] += tuning.onset_cost
        costs[last] += tuning.release_cost
        for index in range(first, last + 1):
            costs[index] += tuning.sustain_cost
    return costs


def complexity_target(costs: Sequence[float], fraction: float, ppq: int) -> Optional[float]:
    total = sum(costs)
    if total <= SCORE_EPSILON:
        return None

    goal = total * fraction
    accumulated = 0.0
    beat = max(1, ppq)
    for index, cost in enumerate(costs):
        if cost > 0 and accumulated + cost >= goal:
            return (index + (goal - accumulated) / cost) * beat
        accumulated += cost
    return float(len(costs) * beat)


def count_active_at(notes: Sequence[NoteEvent], tick: int) -> int:
    return sum(1 for note in notes if note.start_tick < tick < note.end_tick)


def count_touching(notes: Sequence[NoteEvent], tick: int) -> int:
    return sum(1 for note in notes if abs(note.start_tick - tick) <= 1 or abs(note.end_tick - tick) <= 1)


def choose_split_boundary(
    target_tick: float,
    min_tick: int,
    max_tick: int,
    notes: Sequence[NoteEvent],
    ppq: int,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> int:
    """Snap a target cut to the cheapest nearby tick.

    Ticks cutting through fewer sounding notes always win; among those, the
    score rewards closeness to the target, bar lines and note edges.
    """
    if max_tick <= min_tick:
        return min_tick

    target = int(clamp(round(target_tick), min_tick, max_tick))
    window = int(clamp((max_tick - min_tick) // 4, ppq, ppq * 4))
    search_min = max(min_tick, target - window)
    search_max = min(max_tick, target + window)
    bar_ticks = max(1, ppq * BEATS_PER_BAR)

    candidates = {target, search_min, search_max, min_tick, max_tick}
    lower_bar = (target // bar_ticks) * bar_ticks
    upper_bar = ceil_div(target, bar_ticks) * bar_ticks
    for bar in (lower_bar, upper_bar):
        if search_min <= bar <= search_max:
            candidates.add(bar)
    for note in notes:
        for edge in (note.start_tick, note.end_tick):
            if search_min <= edge <= search_max:
                candidates.add(edge)

    best_tick = target
    best_key: Optional[Tuple[int, float, int]] = None
    for tick in sorted(candidates):
        active = count_active_at(notes, tick)
        distance = abs(tick - target)
        score = (
            count_touching(notes, tick) * tuning.boundary_touch_bonus
            - active * tuning.boundary_active_penalty
            - distance / bar_ticks * tuning.boundary_distance_weight
            + (tuning.boundary_bar_bonus if tick % bar_ticks == 0 else 0.0)
        )
        key = (active, -round(score, 9), distance)
        if best_key is None or key < best_key:
            best_key = key
            best_tick = tick
    return best_tick


def split_tick_ranges(
    total_ticks: int,
    count: int,
    notes: Sequence[NoteEvent],
    ppq: int,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> List[Tuple[int, int]]:
    """Cut ``[0, total_ticks)`` into ``count`` ranges of at least a quarter of an even share."""
    safe_total = max(1, int(math.ceil(total_ticks)))
    if count <= 1:
        return [(0, safe_total)]

    costs = slice_costs(notes, safe_total, ppq, tuning)
    min_segment = max(1, safe_total // (count * 4))
    boundaries = [0]
    previous = 0
    for index in range(1, count):
        proportional = safe_total * index / count
        weighted = complexity_target(costs, index / count, ppq)
        target = proportional
        if weighted is not None:
            target = tuning.complexity_blend * proportional + (1 - tuning.complexity_blend) * weighted

        remaining = count - index
        min_tick = max(previous + min_segment, index)
        max_tick = max(min_tick, safe_total - remaining * min_segment)
        boundary = choose_split_boundary(target, min_tick, max_tick, notes, ppq, tuning)
        boundaries.append(boundary)
        previous = boundary
    boundaries.append(safe_total)

    ranges = [(boundaries[i], max(boundaries[i] + 1, boundaries[i + 1])) for i in range(count)]
    ranges[-1] = (ranges[-1][0], max(ranges[-1][0] + 1, safe_total))
    return ranges


def plan_sequential(
    pools: PartPools,
    players: int,
    ppq: int,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> List[EnsembleSegment]:
    total_ticks = max(1, pools.end_tick)
    ranges = split_tick_ranges(total_ticks, players, pools.all_notes(), ppq, tuning)
    logger.info("Sequential split into %d segment(s): %s", len(ranges), [start for start, _ in ranges[1:]])
    return [
        EnsembleSegment(
            start_tick=start,
            end_tick=end,
            melody_notes=tuple(slice_notes_by_range(pools.melody, start, end)),
            upper_notes=tuple(slice_notes_by_range(pools.upper, start, end)),
            lower_notes=tuple(slice_notes_by_range(pools.lower, start, end)),
        )
        for start, end in ranges
    ]


def build_slots(
    notes: Sequence[NoteEvent],
    slot_count: int,
    ppq: int,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> List[VoiceStats]:
    """Redistribute a pool into monophonic slots, highest average pitch first."""
    buckets = separate_voices(notes, slot_count, ppq, tuning)
    slots = [summary for summary in (summarize_voice(i, bucket) for i, bucket in enumerate(buckets)) if summary]
    return sorted(slots, key=lambda slot: -slot.avg_pitch)


def estimate_losses(
    slot: VoiceStats,
    tempo: int,
    ppq: int,
    total_ticks: int,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> Tuple[int, int]:
    losses = []
    for part in (PART_CHORD1, PART_CHORD2):
        encoded = encode_part(
            slot.notes,
            PART_MODES[part],
            PART_LIMITS[part],
            tempo=tempo,
            volume=map_volume(slot.avg_velocity),
            include_tempo=False,
            ppq=ppq,
            compress=False,
            target_end_ticks=total_ticks,
            tuning=tuning,
        )
        losses.append(max(0, slot.note_count - encoded.note_event_count))
    return losses[0], losses[1]


def pitch_bands(slots: Sequence[VoiceStats]) -> List[List[VoiceStats]]:
    """Split slots (sorted high to low) into high/middle/low thirds, filling empty bands."""
    count = len(slots)
    sizes = [count // 3 + (1 if band < count % 3 else 0) for band in range(3)]
    bands: List[List[VoiceStats]] = []
    offset = 0
    for size in sizes:
        bands.append(list(slots[offset : offset + size]))
        offset += size

    for index in range(3):
        if bands[index]:
            continue
        neighbours = [bands[n] for n in (index - 1, index + 1) if 0 <= n < 3 and bands[n]]
        if neighbours:
            bands[index] = list(max(neighbours, key=len))
    return bands


def assign_slots(
    slots: Sequence[VoiceStats],
    players: int,
    tempo: int,
    ppq: int,
    total_ticks: int,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> List[List[VoiceStats]]:
    if len(slots) < players * 3:
        return pitch_bands(slots)

    melodies = list(slots[:players])
    chords = list(slots[players:])
    gains = []
    for slot in chords:
        chord1_loss, chord2_loss = estimate_losses(slot, tempo, ppq, total_ticks, tuning)
        gains.append((chord2_loss - chord1_loss, slot))
    # stable sort keeps higher slots first among equal gains
    gains.sort(key=lambda item: -item[0])
    chord1 = sorted((slot for _, slot in gains[:players]), key=lambda s: -s.avg_pitch)
    chord2 = sorted((slot for _, slot in gains[players:]), key=lambda s: -s.avg_pitch)
    return [melodies, chord1, chord2]


def plan_parallel(
    notes: Sequence[NoteEvent],
    players: int,
    tempo: int,
    ppq: int,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> List[EnsembleSegment]:
    total_ticks = max([1] + [note.end_tick for note in notes])
    slots = build_slots(notes, players * 3, ppq, tuning)
    bands = assign_slots(slots, players, tempo, ppq, total_ticks, tuning)
    logger.info(
        "Parallel split: %d slot(s) into %d player(s), band sizes %s",
        len(slots),
        players,
        [len(band) for band in bands],
    )

    def notes_for(band: List[VoiceStats], player: int) -> Tuple[NoteEvent, ...]:
        return band[player].notes if player < len(band) else ()

    return [
        EnsembleSegment(
            start_tick=0,
            end_tick=total_ticks,
            melody_notes=notes_for(bands[0], player),
            upper_notes=notes_for(bands[1], player),
            lower_notes=notes_for(bands[2], player),
        )
        for player in range(players)
    ]


def render_segments(
    segments: Sequence[EnsembleSegment],
    tempo: int,
    ppq: int,
    compress: bool,
    align_across: bool = False,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> List[ScoreParts]:
    rendered = [
        build_score_parts(
            segment.melody_notes,
            segment.upper_notes,
            segment.lower_notes,
            tempo=tempo,
            ppq=ppq,
            compress=compress,
            target_end_ticks=max(1, segment.length_ticks),
            align=not align_across,
            tuning=tuning,
        )
        for segment in segments
    ]
    if compress and align_across:
        return align_parts(rendered)
    return rendered
