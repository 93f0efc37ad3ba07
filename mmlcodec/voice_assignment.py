from __future__ import annotations

from typing import Callable, List, Sequence, TypeVar

from .midi_utils import make_monophonic
from .structures import NoteEvent
from .tuning import DEFAULT_TUNING, CodecTuning

T = TypeVar("T")

BucketCost = Callable[[Sequence[T], T], float]


def assign_to_buckets(items: Sequence[T], bucket_count: int, cost: BucketCost) -> List[List[T]]:
    """Greedily place each item into the bucket with the lowest running cost.

    Items are visited in the given order; ties go to the lowest bucket index.
    """
    buckets: List[List[T]] = [[] for _ in range(max(1, bucket_count))]
    for item in items:
        best_index = 0
        best_cost = None
        for index, bucket in enumerate(buckets):
            value = cost(bucket, item)
            if best_cost is None or value < best_cost:
                best_cost = value
                best_index = index
        buckets[best_index].append(item)
    return buckets


def make_voice_cost(ppq: int, tuning: CodecTuning = DEFAULT_TUNING) -> BucketCost:
    quarter = max(1, ppq)

    def cost(bucket: Sequence[NoteEvent], note: NoteEvent) -> float:
        if not bucket:
            return tuning.assignment_empty_cost
        last = bucket[-1]
        last_end = max(last.end_tick, bucket[-2].end_tick) if len(bucket) > 1 else last.end_tick
        value = abs(note.pitch - last.pitch) * tuning.assignment_pitch_weight
        if last_end > note.start_tick:
            overlap = last_end - note.start_tick
            value += tuning.assignment_overlap_penalty * (1.0 + overlap / max(1, note.duration_ticks))
        else:
            idle_quarters = (note.start_tick - last_end) / quarter
            value += min(tuning.assignment_idle_cap, idle_quarters * tuning.assignment_idle_weight)
        return value

    return cost


def separation_order(notes: Sequence[NoteEvent]) -> List[NoteEvent]:
    return sorted(notes, key=lambda n: (n.start_tick, -n.pitch, -n.duration_ticks))


def separate_voices(
    notes: Sequence[NoteEvent],
    voice_count: int,
    ppq: int,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> List[List[NoteEvent]]:
    buckets = assign_to_buckets(separation_order(notes), voice_count, make_voice_cost(ppq, tuning))
    return [make_monophonic(bucket) for bucket in buckets]
