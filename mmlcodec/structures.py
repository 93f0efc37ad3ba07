from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

StepSequence = Tuple[Optional[int], ...]


@dataclass(frozen=True, slots=True)
class NoteEvent:
    pitch: int
    start_tick: int
    duration_ticks: int
    velocity: float = 0.7

    @property
    def end_tick(self) -> int:
        return self.start_tick + self.duration_ticks


@dataclass(frozen=True)
class Track:
    notes: Tuple[NoteEvent, ...]
    percussion: bool = False
    name: str = ""


@dataclass(frozen=True)
class VoiceStats:
    index: int
    notes: Tuple[NoteEvent, ...]
    note_count: int
    avg_pitch: float
    avg_velocity: float
    overlap_ratio: float
    max_end_tick: int
    is_percussion: bool = False


@dataclass(frozen=True, slots=True)
class Run:
    value: Optional[int]
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class EncodedPart:
    text: str
    tokens: Tuple[str, ...]
    token_steps: Tuple[int, ...]
    note_event_count: int
    retained_end_ticks: int
    step_ticks: int
    steps_per_quarter: int
    simplify_level: int = 0
    fidelity: float = 0.0
    truncated: bool = False


@dataclass(frozen=True)
class ScoreParts:
    melody: EncodedPart
    chord1: EncodedPart
    chord2: EncodedPart

    def as_dict(self) -> Dict[str, EncodedPart]:
        return {"melody": self.melody, "chord1": self.chord1, "chord2": self.chord2}


@dataclass(frozen=True)
class EnsembleSegment:
    start_tick: int
    end_tick: int
    melody_notes: Tuple[NoteEvent, ...] = ()
    upper_notes: Tuple[NoteEvent, ...] = ()
    lower_notes: Tuple[NoteEvent, ...] = ()

    @property
    def length_ticks(self) -> int:
        return max(0, self.end_tick - self.start_tick)


@dataclass(frozen=True)
class DecodedNote:
    pitch: int
    start_beat: float
    duration_beats: float
    velocity: float


@dataclass(frozen=True)
class TempoChange:
    beat: float
    bpm: int


@dataclass(frozen=True)
class DecodedPart:
    events: Tuple[DecodedNote, ...]
    tempo_changes: Tuple[TempoChange, ...]
    total_beats: float


@dataclass(frozen=True)
class DecodedTrack:
    name: str
    notes: Tuple[NoteEvent, ...]


@dataclass(frozen=True)
class DecodedScore:
    tracks: Tuple[DecodedTrack, ...]
    tempos: Tuple[Tuple[int, int], ...]
    ppq: int
    total_ticks: int


@dataclass(frozen=True)
class ScoreMeta:
    total_ticks: int
    ppq: int
    players: int
    split: str
    bpm: int


@dataclass(frozen=True)
class ScoreBlock:
    melody: str
    chord1: str
    chord2: str
    segment_ticks: Optional[int] = None


@dataclass(frozen=True)
class ConversionResult:
    text: str
    meta: ScoreMeta
    players: Tuple[ScoreParts, ...]
    segments: Tuple[EnsembleSegment, ...] = field(default_factory=tuple)

    def part_lengths(self) -> List[Dict[str, int]]:
        return [{name: len(part.text) for name, part in parts.as_dict().items()} for parts in self.players]
