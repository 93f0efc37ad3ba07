from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .logger_config import logger
from .midi_utils import coalesce_same_pitch, notes_end_tick
from .structures import NoteEvent, VoiceStats
from .tuning import DEFAULT_TUNING, CodecTuning
from .utils import percentile
from .voice_classifier import VoiceRoles


@dataclass(frozen=True)
class PartPools:
    melody: Tuple[NoteEvent, ...]
    upper: Tuple[NoteEvent, ...]
    lower: Tuple[NoteEvent, ...]

    @property
    def end_tick(self) -> int:
        return max(notes_end_tick(self.melody), notes_end_tick(self.upper), notes_end_tick(self.lower))

    def all_notes(self) -> List[NoteEvent]:
        return list(dict.fromkeys(self.melody + self.upper + self.lower))


def merge_track_notes(tracks: Iterable[VoiceStats]) -> List[NoteEvent]:
    merged = [note for track in tracks for note in track.notes]
    return sorted(merged, key=lambda n: (n.start_tick, n.pitch))


def rebalance_pools(
    melody: Sequence[NoteEvent],
    upper: Sequence[NoteEvent],
    lower: Sequence[NoteEvent],
    tuning: CodecTuning = DEFAULT_TUNING,
) -> Tuple[List[NoteEvent], List[NoteEvent], List[NoteEvent]]:
    """Lift high transients out of the lower harmony.

    Notes at or above the upper percentile of the combined harmony pool leave
    the lower pool for the upper one; moved notes also at or above the melody
    percentile are echoed into the melody pool.
    """
    melody_out, upper_out, lower_out = list(melody), list(upper), list(lower)
    combined = list(dict.fromkeys(list(upper) + list(lower)))
    if not lower or len(combined) < tuning.rebalance_min_notes:
        return melody_out, upper_out, lower_out

    pitches = [note.pitch for note in combined]
    upper_threshold = percentile(pitches, tuning.rebalance_upper_percentile)
    melody_threshold = percentile(pitches, tuning.rebalance_melody_percentile)
    if upper_threshold <= min(pitches):
        return melody_out, upper_out, lower_out

    moved = [note for note in lower if note.pitch >= upper_threshold]
    remaining = [note for note in lower if note.pitch < upper_threshold]
    if not moved or not remaining:
        return melody_out, upper_out, lower_out

    upper_set = set(upper_out)
    upper_out.extend(note for note in moved if note not in upper_set)
    lower_out = remaining

    melody_set = set(melody_out)
    echoed = [note for note in moved if note.pitch >= melody_threshold and note not in melody_set]
    melody_out.extend(echoed)

    logger.debug(
        "Rebalanced harmony: moved=%d echoed=%d upper_threshold=%s melody_threshold=%s",
        len(moved),
        len(echoed),
        upper_threshold,
        melody_threshold,
    )
    return coalesce_same_pitch(melody_out), coalesce_same_pitch(upper_out), coalesce_same_pitch(lower_out)


def build_part_pools(roles: VoiceRoles, tuning: CodecTuning = DEFAULT_TUNING) -> PartPools:
    melody = merge_track_notes(roles.melody_tracks)
    if roles.upper_tracks is not None and roles.lower_tracks is not None:
        upper = merge_track_notes(roles.upper_tracks)
        lower = merge_track_notes(roles.lower_tracks)
    else:
        upper = merge_track_notes(roles.chord_pool_tracks)
        lower = list(upper)

    melody, upper, lower = rebalance_pools(melody, upper, lower, tuning)
    return PartPools(melody=tuple(melody), upper=tuple(upper), lower=tuple(lower))
