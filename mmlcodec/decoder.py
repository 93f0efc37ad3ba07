from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .constants import (
    DECODE_BPM_MAX,
    DECODE_BPM_MIN,
    DEFAULT_BPM,
    DEFAULT_DECODE_VOLUME,
    DEFAULT_LENGTH_DENOMINATOR,
    DEFAULT_OCTAVE,
    MIDI_MAX,
    MIDI_MIN,
    NOTE_TO_SEMITONE,
    OCTAVE_MAX,
    OCTAVE_MIN,
    PART_NAMES,
    SPLIT_PARALLEL,
    VOLUME_MAX,
    VOLUME_MIN,
)
from .logger_config import logger
from .music_notation import duration_in_beats
from .score_format import parse_score
from .structures import DecodedNote, DecodedPart, DecodedScore, DecodedTrack, NoteEvent, TempoChange
from .utils import clamp

SEPARATORS = ",;@"


@dataclass
class ParseCursor:
    text: str
    index: int = 0
    beat: float = 0.0
    octave: int = DEFAULT_OCTAVE
    default_length: int = DEFAULT_LENGTH_DENOMINATOR
    default_dots: int = 0
    volume: int = DEFAULT_DECODE_VOLUME
    tempo: int = DEFAULT_BPM

    def at_end(self) -> bool:
        return self.index >= len(self.text)

    def peek(self) -> str:
        return self.text[self.index] if self.index < len(self.text) else ""

    def shift_octave(self, delta: int) -> None:
        self.octave = int(clamp(self.octave + delta, OCTAVE_MIN, OCTAVE_MAX))


@dataclass(frozen=True)
class PlayableUnit:
    pitch: Optional[int]
    duration: float


def read_integer(cursor: ParseCursor) -> Optional[int]:
    start = cursor.index
    while cursor.index < len(cursor.text) and cursor.text[cursor.index].isdigit():
        cursor.index += 1
    if cursor.index == start:
        return None
    return int(cursor.text[start : cursor.index])


def read_dots(cursor: ParseCursor) -> int:
    dots = 0
    while cursor.peek() == ".":
        dots += 1
        cursor.index += 1
    return dots


def skip_whitespace(cursor: ParseCursor) -> None:
    while cursor.index < len(cursor.text) and cursor.text[cursor.index].isspace():
        cursor.index += 1


def read_duration(cursor: ParseCursor) -> float:
    """Explicit length with dots, or the default length (and its dots) when absent."""
    value = read_integer(cursor)
    dots = read_dots(cursor)
    if value is not None and value > 0:
        return duration_in_beats(value, dots)
    return duration_in_beats(cursor.default_length, cursor.default_dots + dots)


def parse_playable_unit(cursor: ParseCursor) -> Optional[PlayableUnit]:
    skip_whitespace(cursor)
    if cursor.at_end():
        return None

    char = cursor.peek().lower()
    if char == "r":
        cursor.index += 1
        return PlayableUnit(pitch=None, duration=read_duration(cursor))

    if char == "n":
        cursor.index += 1
        number = read_integer(cursor)
        if number is None:
            return None
        return PlayableUnit(pitch=int(clamp(number, MIDI_MIN, MIDI_MAX)), duration=read_duration(cursor))

    if char in NOTE_TO_SEMITONE:
        cursor.index += 1
        semitone = NOTE_TO_SEMITONE[char]
        accidental = cursor.peek()
        if accidental in ("+", "#"):
            semitone += 1
            cursor.index += 1
        elif accidental == "-":
            semitone -= 1
            cursor.index += 1
        pitch = int(clamp((cursor.octave + 1) * 12 + semitone, MIDI_MIN, MIDI_MAX))
        return PlayableUnit(pitch=pitch, duration=read_duration(cursor))

    return None


def velocity_for_volume(volume: int) -> float:
    normalized = clamp(volume, VOLUME_MIN, VOLUME_MAX) / VOLUME_MAX
    return float(clamp(0.15 + normalized * 0.85, 0.0, 1.0))


def _read_directive(cursor: ParseCursor, tempo_changes: List[TempoChange]) -> bool:
    char = cursor.peek().lower()
    if char in SEPARATORS or char == "&":
        cursor.index += 1
        return True
    if char == "<":
        cursor.shift_octave(-1)
        cursor.index += 1
        return True
    if char == ">":
        cursor.shift_octave(1)
        cursor.index += 1
        return True
    if char not in "tvol":
        return False

    cursor.index += 1
    value = read_integer(cursor)
    if char == "t":
        if value is not None and value > 0:
            cursor.tempo = int(clamp(value, DECODE_BPM_MIN, DECODE_BPM_MAX))
            tempo_changes.append(TempoChange(beat=cursor.beat, bpm=cursor.tempo))
    elif char == "v":
        if value is not None:
            cursor.volume = int(clamp(value, VOLUME_MIN, VOLUME_MAX))
    elif char == "o":
        if value is not None:
            cursor.octave = int(clamp(value, OCTAVE_MIN, OCTAVE_MAX))
    else:
        dots = read_dots(cursor)
        if value is not None and value > 0:
            cursor.default_length = value
            cursor.default_dots = dots
    return True


def _read_ties(cursor: ParseCursor) -> float:
    # octave shifts may sit between '&' and the tied unit
    extra = 0.0
    while True:
        checkpoint = cursor.index
        skip_whitespace(cursor)
        if cursor.peek() != "&":
            cursor.index = checkpoint
            return extra

        cursor.index += 1
        skip_whitespace(cursor)
        while cursor.peek() in ("<", ">"):
            cursor.shift_octave(-1 if cursor.peek() == "<" else 1)
            cursor.index += 1

        tied = parse_playable_unit(cursor)
        if tied is None:
            return extra
        extra += tied.duration


def decode_part(text: str) -> DecodedPart:
    cursor = ParseCursor(text=(text or "").strip())
    events: List[DecodedNote] = []
    tempo_changes: List[TempoChange] = []

    while not cursor.at_end():
        skip_whitespace(cursor)
        if cursor.at_end():
            break
        if _read_directive(cursor, tempo_changes):
            continue

        unit = parse_playable_unit(cursor)
        if unit is None:
            cursor.index += 1
            continue

        duration = unit.duration + _read_ties(cursor)
        if unit.pitch is not None:
            events.append(
                DecodedNote(
                    pitch=unit.pitch,
                    start_beat=cursor.beat,
                    duration_beats=duration,
                    velocity=velocity_for_volume(cursor.volume),
                )
            )
        cursor.beat += duration

    return DecodedPart(events=tuple(events), tempo_changes=tuple(tempo_changes), total_beats=cursor.beat)


def beats_to_ticks(beats: float, ppq: int) -> int:
    return max(0, int(round(beats * ppq)))


def normalize_tempo_changes(
    entries: Sequence[Tuple[int, float]],
    fallback_bpm: int = DEFAULT_BPM,
) -> List[Tuple[int, int]]:
    """Sort tick/bpm pairs, keep the first per tick and guarantee one at tick 0."""
    ordered = sorted(
        ((max(0, int(tick)), int(clamp(round(bpm), DECODE_BPM_MIN, DECODE_BPM_MAX))) for tick, bpm in entries),
        key=lambda entry: entry[0],
    )
    deduped: List[Tuple[int, int]] = []
    for entry in ordered:
        if deduped and deduped[-1][0] == entry[0]:
            continue
        deduped.append(entry)

    if not deduped or deduped[0][0] != 0:
        first_bpm = deduped[0][1] if deduped else int(clamp(fallback_bpm, DECODE_BPM_MIN, DECODE_BPM_MAX))
        deduped.insert(0, (0, first_bpm))
    return deduped


def _place_notes(part: DecodedPart, offset_ticks: int, ppq: int) -> List[NoteEvent]:
    return [
        NoteEvent(
            pitch=event.pitch,
            start_tick=offset_ticks + beats_to_ticks(event.start_beat, ppq),
            duration_ticks=max(1, beats_to_ticks(event.duration_beats, ppq)),
            velocity=event.velocity,
        )
        for event in part.events
    ]


def decode_score(score_text: str, ppq: Optional[int] = None) -> DecodedScore:
    """Decode a whole text score into tick-timed tracks and a tempo map.

    Sequential scores play their blocks one after another on three shared
    tracks; parallel scores start every player at tick 0 on its own three
    tracks.
    """
    meta, blocks = parse_score(score_text)
    out_ppq = max(1, int(ppq or meta.ppq))
    parallel = meta.split == SPLIT_PARALLEL
    labels = [name.capitalize() for name in PART_NAMES]

    track_notes: List[List[NoteEvent]] = [[] for _ in range((len(blocks) if parallel else 1) * len(labels))]
    tempo_entries: List[Tuple[int, float]] = []
    offset = 0
    total_ticks = 0

    for block_index, block in enumerate(blocks):
        parts = [decode_part(block.melody), decode_part(block.chord1), decode_part(block.chord2)]
        block_offset = 0 if parallel else offset
        first_track = block_index * len(labels) if parallel else 0

        for part_index, part in enumerate(parts):
            notes = _place_notes(part, block_offset, out_ppq)
            track_notes[first_track + part_index].extend(notes)
            tempo_entries.extend(
                (block_offset + beats_to_ticks(change.beat, out_ppq), change.bpm) for change in part.tempo_changes
            )

        decoded_ticks = beats_to_ticks(max(part.total_beats for part in parts), out_ppq)
        if block.segment_ticks is not None:
            block_ticks = int(round(block.segment_ticks * out_ppq / meta.ppq))
        else:
            block_ticks = decoded_ticks
        total_ticks = max(total_ticks, block_offset + max(block_ticks, decoded_ticks))
        offset += block_ticks

    if parallel:
        names = [f"Player {index + 1} {label}" for index in range(len(blocks)) for label in labels]
    else:
        names = labels

    tracks = tuple(
        DecodedTrack(name=name, notes=tuple(sorted(notes, key=lambda n: (n.start_tick, n.pitch))))
        for name, notes in zip(names, track_notes)
    )
    tempos = tuple(normalize_tempo_changes(tempo_entries, meta.bpm))
    logger.info(
        "Decoded score: blocks=%d split=%s notes=%d ticks=%d",
        len(blocks),
        meta.split,
        sum(len(track.notes) for track in tracks),
        total_ticks,
    )
    return DecodedScore(tracks=tracks, tempos=tempos, ppq=out_ppq, total_ticks=total_ticks)
