from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence

from .constants import DEFAULT_PPQ
from .errors import EmptyInputError
from .logger_config import logger
from .midi_utils import normalize_note, sort_notes
from .structures import NoteEvent, Track, VoiceStats
from .tuning import DEFAULT_TUNING, CodecTuning
from .utils import log2_count
from .voice_assignment import separate_voices


@dataclass(frozen=True)
class VoiceRoles:
    melody_tracks: List[VoiceStats]
    harmony_tracks: List[VoiceStats]
    chord_pool_tracks: List[VoiceStats]
    upper_tracks: Optional[List[VoiceStats]] = None
    lower_tracks: Optional[List[VoiceStats]] = None
    separated: bool = field(default=False)


def summarize_voice(index: int, notes: Sequence[NoteEvent], is_percussion: bool = False) -> Optional[VoiceStats]:
    ordered = sort_notes(normalize_note(n.pitch, n.start_tick, n.duration_ticks, n.velocity) for n in notes)
    if not ordered:
        return None

    max_end = 0
    overlap_count = 0
    active_end = -1
    pitch_sum = 0
    velocity_sum = 0.0
    for note in ordered:
        if note.start_tick < active_end:
            overlap_count += 1
        active_end = max(active_end, note.end_tick)
        max_end = max(max_end, note.end_tick)
        pitch_sum += note.pitch
        velocity_sum += note.velocity

    count = len(ordered)
    return VoiceStats(
        index=index,
        notes=tuple(ordered),
        note_count=count,
        avg_pitch=pitch_sum / count,
        avg_velocity=velocity_sum / count,
        overlap_ratio=overlap_count / max(1, count),
        max_end_tick=max_end,
        is_percussion=is_percussion,
    )


def collect_voice_stats(tracks: Sequence[Track]) -> List[VoiceStats]:
    stats: List[VoiceStats] = []
    for index, track in enumerate(tracks):
        summary = summarize_voice(index, track.notes, track.percussion)
        if summary is not None:
            stats.append(summary)
    return stats


def usable_voices(stats: Sequence[VoiceStats]) -> List[VoiceStats]:
    non_percussion = [voice for voice in stats if not voice.is_percussion]
    return non_percussion if non_percussion else list(stats)


def melody_score(voice: VoiceStats, tuning: CodecTuning = DEFAULT_TUNING) -> float:
    return (
        voice.avg_pitch * tuning.melody_pitch_weight
        + (1 - voice.overlap_ratio) * tuning.melody_mono_weight
        + log2_count(voice.note_count) * tuning.melody_busy_weight
    )


def should_separate(usable: Sequence[VoiceStats], tuning: CodecTuning = DEFAULT_TUNING) -> bool:
    if len(usable) != 1:
        return False
    voice = usable[0]
    return voice.overlap_ratio >= tuning.separation_overlap_ratio and voice.note_count >= tuning.separation_min_notes


def split_single_voice(
    voice: VoiceStats,
    ppq: int,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> List[VoiceStats]:
    buckets = separate_voices(voice.notes, tuning.separation_voices, ppq, tuning)
    separated: List[VoiceStats] = []
    for bucket in buckets:
        summary = summarize_voice(len(separated), bucket, voice.is_percussion)
        if summary is not None:
            separated.append(summary)
    separated.sort(key=lambda v: -v.avg_pitch)
    return [replace(v, index=position) for position, v in enumerate(separated)]


def _roles_from_separation(voices: List[VoiceStats]) -> VoiceRoles:
    melody = voices[0]
    upper = voices[1]
    lower = voices[2] if len(voices) > 2 else voices[1]
    harmony = voices[1:]
    return VoiceRoles(
        melody_tracks=[melody],
        harmony_tracks=harmony,
        chord_pool_tracks=harmony,
        upper_tracks=[upper],
        lower_tracks=[lower],
        separated=True,
    )


def pick_track_groups(stats: Sequence[VoiceStats], tuning: CodecTuning = DEFAULT_TUNING) -> VoiceRoles:
    usable = usable_voices(stats)

    melody_track = usable[0]
    for track in usable[1:]:
        if melody_score(track, tuning) > melody_score(melody_track, tuning):
            melody_track = track

    min_support_notes = max(tuning.support_min_notes, int(melody_track.note_count * tuning.support_min_ratio))
    support = [
        track
        for track in usable
        if track.index != melody_track.index
        and track.avg_pitch >= melody_track.avg_pitch - tuning.support_pitch_window
        and track.overlap_ratio <= tuning.support_max_overlap
        and track.note_count >= min_support_notes
    ]
    support.sort(key=lambda t: (-t.avg_pitch, -t.note_count))
    melody_tracks = [melody_track] + support[: tuning.max_support_tracks]
    melody_ids = {track.index for track in melody_tracks}

    harmony_tracks = [track for track in usable if track.index not in melody_ids]
    if not harmony_tracks:
        harmony_tracks = [melody_track]

    chord_pool = sorted(harmony_tracks, key=lambda t: (-t.note_count, t.avg_pitch))
    chord_pool = chord_pool[: min(tuning.max_chord_pool_tracks, len(chord_pool))]

    return VoiceRoles(
        melody_tracks=melody_tracks,
        harmony_tracks=harmony_tracks,
        chord_pool_tracks=chord_pool,
    )


def classify_voices(
    tracks: Sequence[Track],
    ppq: int = DEFAULT_PPQ,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> VoiceRoles:
    stats = collect_voice_stats(tracks)
    if not stats:
        raise EmptyInputError("No playable notes found in any track")

    usable = usable_voices(stats)
    if should_separate(usable, tuning):
        voices = split_single_voice(usable[0], ppq, tuning)
        if len(voices) >= 2:
            logger.debug(
                "Separated single polyphonic track into %d voices (overlap=%.2f notes=%d)",
                len(voices),
                usable[0].overlap_ratio,
                usable[0].note_count,
            )
            return _roles_from_separation(voices)

    roles = pick_track_groups(stats, tuning)
    logger.debug(
        "Classified tracks: melody=%s harmony=%s chord_pool=%s",
        [t.index for t in roles.melody_tracks],
        [t.index for t in roles.harmony_tracks],
        [t.index for t in roles.chord_pool_tracks],
    )
    return roles
