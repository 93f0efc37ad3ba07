from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .constants import (
    DEFAULT_HARMONY_VELOCITY,
    DEFAULT_MELODY_VELOCITY,
    EMITTED_VOLUME_MAX,
    EMITTED_VOLUME_MIN,
    PART_LIMITS,
    PART_MELODY,
    PART_NAMES,
    SCORE_EPSILON,
)
from .fidelity import early_window_steps, evaluate_fidelity
from .logger_config import logger
from .midi_utils import average_velocity, map_volume, overlap_ratio
from .music_notation import base_length_for
from .run_encoder import (
    build_encoded_part,
    clip_part_to_ticks,
    count_note_onsets,
    encode_runs,
    fallback_part,
    normalize_runs,
    sequence_to_runs,
)
from .sequencer import build_monophonic_sequence, build_step_sequence, has_pitch
from .simplifier import simplify_sequence
from .structures import EncodedPart, NoteEvent, ScoreParts, StepSequence
from .tuning import DEFAULT_TUNING, CodecTuning
from .utils import clamp
from .voice_mode import PART_MODES, VoiceMode, candidate_resolutions


@dataclass(frozen=True)
class Reference:
    sequence: StepSequence
    step_ticks: int
    steps_per_quarter: int
    onset_count: int
    early_steps: int


@dataclass(frozen=True)
class Candidate:
    part: EncodedPart
    text_length: int
    score: float


def build_reference(
    notes: Sequence[NoteEvent],
    mode: VoiceMode,
    ppq: int,
    target_end_ticks: int = 0,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> Reference:
    step_ticks = max(1, round(ppq / tuning.reference_steps_per_quarter))
    if overlap_ratio(notes) <= tuning.monophonic_reference_overlap:
        sequence = build_monophonic_sequence(notes, step_ticks, target_end_ticks)
    else:
        sequence = build_step_sequence(notes, step_ticks, mode, target_end_ticks)

    steps_per_quarter = max(1, ppq // step_ticks)
    return Reference(
        sequence=sequence,
        step_ticks=step_ticks,
        steps_per_quarter=steps_per_quarter,
        onset_count=sum(1 for run in sequence_to_runs(sequence) if run.value is not None),
        early_steps=early_window_steps(len(sequence), steps_per_quarter, tuning),
    )


def usable_resolutions(mode: VoiceMode, ppq: int, compress: bool, tuning: CodecTuning) -> List[int]:
    resolutions = list(candidate_resolutions(mode, compress, tuning))
    dividing = [spq for spq in resolutions if ppq % spq == 0]
    return dividing or resolutions


def _is_better(candidate: Candidate, best: Optional[Candidate], within: bool, strict_prefix: bool) -> bool:
    if best is None:
        return True

    if strict_prefix:
        if within:
            keys = (candidate.part.note_event_count, best.part.note_event_count)
            if keys[0] != keys[1]:
                return keys[0] > keys[1]
            if abs(candidate.part.fidelity - best.part.fidelity) > SCORE_EPSILON:
                return candidate.part.fidelity > best.part.fidelity
        else:
            if candidate.part.retained_end_ticks != best.part.retained_end_ticks:
                return candidate.part.retained_end_ticks > best.part.retained_end_ticks
            if candidate.part.note_event_count != best.part.note_event_count:
                return candidate.part.note_event_count > best.part.note_event_count

    if abs(candidate.score - best.score) > SCORE_EPSILON:
        return candidate.score > best.score
    if candidate.part.steps_per_quarter != best.part.steps_per_quarter:
        return candidate.part.steps_per_quarter > best.part.steps_per_quarter
    return candidate.text_length < best.text_length


def encode_part(
    notes: Sequence[NoteEvent],
    mode: VoiceMode,
    limit: int,
    tempo: int,
    volume: int,
    include_tempo: bool,
    ppq: int,
    compress: bool,
    target_end_ticks: int = 0,
    strict_prefix: bool = False,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> EncodedPart:
    """Pick the rendering of one part that best trades fidelity for size.

    Candidates are every usable resolution crossed with the simplification
    levels of each pass. A pass that yields a text within ``limit`` ends the
    search; otherwise the best overflowing candidate is cut at a token
    boundary. ``strict_prefix`` ranks candidates by how much of the piece
    they keep rather than by fidelity.
    """
    mode = VoiceMode(mode)
    keep_trailing_rests = target_end_ticks > 0
    reference = build_reference(notes, mode, ppq, target_end_ticks, tuning)
    resolutions = usable_resolutions(mode, ppq, compress, tuning)
    max_resolution = max(resolutions)
    passes = tuning.simplify_passes if compress else ((0,),)
    early_weight = tuning.early_weight_compressed if compress else tuning.early_weight_fixed

    base_sequences: Dict[int, StepSequence] = {}
    best_within: Optional[Candidate] = None
    best_overflow: Optional[Candidate] = None

    for pass_index, levels in enumerate(passes):
        for steps_per_quarter in resolutions:
            step_ticks = max(1, round(ppq / steps_per_quarter))
            base_length = base_length_for(steps_per_quarter)
            base = base_sequences.get(steps_per_quarter)
            if base is None:
                base = build_step_sequence(notes, step_ticks, mode, target_end_ticks)
                base_sequences[steps_per_quarter] = base
            if not has_pitch(base) and not keep_trailing_rests:
                continue

            for level in levels:
                sequence = simplify_sequence(base, mode, level, tuning)
                runs = normalize_runs(sequence_to_runs(sequence), base_length, keep_trailing_rests)
                tokens, token_steps = encode_runs(runs, base_length, tempo, volume, include_tempo)
                text_length = sum(len(token) for token in tokens)

                fidelity = evaluate_fidelity(
                    reference.sequence, reference.step_ticks, sequence, step_ticks, tuning=tuning
                )
                early_fidelity = evaluate_fidelity(
                    reference.sequence,
                    reference.step_ticks,
                    sequence,
                    step_ticks,
                    limit_steps=reference.early_steps,
                    tuning=tuning,
                )
                coverage = min(1.0, count_note_onsets(tokens) / max(1, reference.onset_count))
                bonus = (
                    tuning.resolution_bonus * steps_per_quarter / max_resolution
                    + tuning.coverage_bonus * coverage
                    + early_weight * early_fidelity
                )

                part = build_encoded_part(
                    tokens,
                    token_steps,
                    step_ticks,
                    steps_per_quarter,
                    limit=limit,
                    simplify_level=level,
                    fidelity=fidelity,
                )
                within = text_length <= limit
                if within:
                    score = fidelity - level * tuning.simplify_penalty + bonus
                else:
                    overflow_ratio = (text_length - limit) / max(1, limit)
                    score = (
                        fidelity
                        - overflow_ratio * tuning.overflow_ratio_weight
                        - level * tuning.overflow_simplify_penalty
                        + bonus
                    )
                candidate = Candidate(part=part, text_length=text_length, score=score)

                logger.debug(
                    "Candidate mode=%s spq=%d level=%d length=%d/%d fidelity=%.4f score=%.4f",
                    mode.value,
                    steps_per_quarter,
                    level,
                    text_length,
                    limit,
                    fidelity,
                    score,
                )
                if within:
                    if _is_better(candidate, best_within, True, strict_prefix):
                        best_within = candidate
                elif _is_better(candidate, best_overflow, False, strict_prefix):
                    best_overflow = candidate

        if best_within is not None:
            logger.debug(
                "Chose %s rendering in pass %d: spq=%d level=%d length=%d",
                mode.value,
                pass_index,
                best_within.part.steps_per_quarter,
                best_within.part.simplify_level,
                best_within.text_length,
            )
            return best_within.part

    if best_overflow is None:
        logger.debug("No playable candidate for %s; using fallback text", mode.value)
        return fallback_part(tempo, volume, include_tempo, limit, ppq)

    logger.warning(
        "Truncated %s part from %d to %d characters (spq=%d level=%d)",
        mode.value,
        best_overflow.text_length,
        len(best_overflow.part.text),
        best_overflow.part.steps_per_quarter,
        best_overflow.part.simplify_level,
    )
    return best_overflow.part


def part_volumes(
    melody: Sequence[NoteEvent],
    harmony: Sequence[NoteEvent],
) -> Tuple[int, int, int]:
    melody_volume = map_volume(average_velocity(melody, DEFAULT_MELODY_VELOCITY))
    chord_volume = map_volume(average_velocity(harmony, DEFAULT_HARMONY_VELOCITY))
    bass_volume = int(clamp(chord_volume + 1, EMITTED_VOLUME_MIN, EMITTED_VOLUME_MAX))
    return melody_volume, chord_volume, bass_volume


def align_parts(players: Sequence[ScoreParts]) -> List[ScoreParts]:
    """Clip every part to the shortest span kept by any truncated part."""
    truncated_ends = [
        part.retained_end_ticks
        for parts in players
        for part in (parts.melody, parts.chord1, parts.chord2)
        if part.truncated
    ]
    if not truncated_ends:
        return list(players)

    end_ticks = min(truncated_ends)
    logger.debug("Aligning %d player(s) to %d ticks", len(players), end_ticks)
    return [
        ScoreParts(
            melody=clip_part_to_ticks(parts.melody, end_ticks),
            chord1=clip_part_to_ticks(parts.chord1, end_ticks),
            chord2=clip_part_to_ticks(parts.chord2, end_ticks),
        )
        for parts in players
    ]


def build_score_parts(
    melody: Sequence[NoteEvent],
    upper: Sequence[NoteEvent],
    lower: Sequence[NoteEvent],
    tempo: int,
    ppq: int,
    compress: bool,
    target_end_ticks: int = 0,
    strict_prefix: bool = False,
    align: bool = True,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> ScoreParts:
    volumes = part_volumes(melody, list(upper) + list(lower))
    sources = (melody, upper, lower)
    common = dict(
        tempo=tempo,
        ppq=ppq,
        compress=compress,
        target_end_ticks=target_end_ticks,
        strict_prefix=strict_prefix,
        tuning=tuning,
    )
    encoded = {
        part: encode_part(
            notes,
            PART_MODES[part],
            PART_LIMITS[part],
            volume=volume,
            include_tempo=part == PART_MELODY,
            **common,
        )
        for part, notes, volume in zip(PART_NAMES, sources, volumes)
    }
    parts = ScoreParts(**encoded)
    if compress and align:
        return align_parts([parts])[0]
    return parts
