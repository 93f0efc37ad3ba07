from __future__ import annotations

from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field


class CodecTuning(BaseModel):
    """Empirically tuned weights of the codec.

    The values only matter relative to each other: exact pitch matches must
    outrank near misses, an active note at a cut point must cost more than
    any distance to the ideal cut, and so on. Override a subset with
    ``DEFAULT_TUNING.model_copy(update={...})``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # pitch-match score per reference step
    exact_match_score: float = 2.0
    semitone_score: float = 1.45
    whole_tone_score: float = 1.05
    third_score: float = 0.4
    fifth_score: float = -0.25
    far_score: float = -0.85
    rest_mismatch_score: float = -1.2
    both_rest_score: float = 0.35
    third_semitones: int = 4
    fifth_semitones: int = 7

    transition_match_bonus: float = 0.15
    leap_identical_bonus: float = 0.2
    leap_close_bonus: float = 0.08
    leap_far_penalty: float = 0.12
    leap_close_semitones: int = 2
    leap_far_semitones: int = 7

    reference_steps_per_quarter: int = 96
    monophonic_reference_overlap: float = Field(default=0.35, ge=0.0, le=1.0)

    early_window_fraction: float = Field(default=0.35, gt=0.0, le=1.0)
    early_window_min_quarters: int = 64
    early_window_max_quarters: int = 192
    early_weight_compressed: float = 0.35
    early_weight_fixed: float = 0.15

    simplify_penalty: float = 0.14
    overflow_simplify_penalty: float = 0.16
    overflow_ratio_weight: float = 3.0
    resolution_bonus: float = 0.02
    coverage_bonus: float = 0.1

    melody_resolutions: Tuple[int, ...] = (32, 24, 20, 16, 12, 10, 8, 6, 4, 3, 2, 1)
    harmony_resolutions: Tuple[int, ...] = (24, 20, 16, 12, 10, 8, 6, 4, 3, 2, 1)
    melody_fixed_resolution: int = 8
    harmony_fixed_resolution: int = 4
    simplify_passes: Tuple[Tuple[int, ...], ...] = ((0,), (1, 2, 3))

    melody_short_run_base: int = 1
    harmony_short_run_base: int = 2

    # voice classification
    melody_pitch_weight: float = 1.2
    melody_mono_weight: float = 25.0
    melody_busy_weight: float = 4.0
    support_pitch_window: int = 7
    support_max_overlap: float = 0.45
    support_min_notes: int = 8
    support_min_ratio: float = 0.2
    max_support_tracks: int = 2
    max_chord_pool_tracks: int = 3
    separation_overlap_ratio: float = 0.55
    separation_min_notes: int = 64
    separation_voices: int = 3

    # greedy voice assignment costs
    assignment_overlap_penalty: float = 40.0
    assignment_pitch_weight: float = 1.6
    assignment_empty_cost: float = 6.0
    assignment_idle_weight: float = 0.75
    assignment_idle_cap: float = 6.0

    # harmony pool rebalancing
    rebalance_min_notes: int = 24
    rebalance_upper_percentile: float = 0.95
    rebalance_melody_percentile: float = 0.985

    # sequential ensemble boundaries
    onset_cost: float = 4.0
    release_cost: float = 1.8
    sustain_cost: float = 0.2
    complexity_blend: float = Field(default=0.5, ge=0.0, le=1.0)
    boundary_touch_bonus: float = 0.08
    boundary_bar_bonus: float = 0.45
    boundary_distance_weight: float = 1.8
    boundary_active_penalty: float = 2.0


DEFAULT_TUNING = CodecTuning()
