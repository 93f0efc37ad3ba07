from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field

from .constants import DEFAULT_BPM, DEFAULT_PPQ, DEFAULT_VELOCITY, MIDI_MAX, MIDI_MIN, SPLIT_SEQUENTIAL


class NoteModel(BaseModel):
    pitch: int = Field(ge=MIDI_MIN, le=MIDI_MAX)
    start_tick: int = Field(ge=0)
    duration_ticks: int = Field(ge=1)
    velocity: float = Field(default=DEFAULT_VELOCITY, ge=0.0, le=1.0)


class TrackModel(BaseModel):
    notes: List[NoteModel] = Field(default_factory=list)
    percussion: bool = False
    name: str = ""


class EncodeRequest(BaseModel):
    tracks: List[TrackModel]
    ppq: int = Field(default=DEFAULT_PPQ, ge=1)
    bpm: float = Field(default=DEFAULT_BPM, gt=0)
    players: int = Field(default=1, ge=1, le=16)
    split: Literal["sequential", "parallel"] = SPLIT_SEQUENTIAL
    compress: bool = False


class DecodeRequest(BaseModel):
    score: str
    ppq: int = Field(default=DEFAULT_PPQ, ge=1)
