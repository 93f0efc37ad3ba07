from __future__ import annotations

APP_NAME = "mmlcodec"

PART_MELODY = "melody"
PART_CHORD1 = "chord1"
PART_CHORD2 = "chord2"
PART_NAMES = (PART_MELODY, PART_CHORD1, PART_CHORD2)

PART_LIMITS = {
    PART_MELODY: 1200,
    PART_CHORD1: 800,
    PART_CHORD2: 500,
}

SPLIT_SEQUENTIAL = "sequential"
SPLIT_PARALLEL = "parallel"
SPLIT_MODES = (SPLIT_SEQUENTIAL, SPLIT_PARALLEL)

NOTE_NAMES = ["c", "c+", "d", "d+", "e", "f", "f+", "g", "g+", "a", "a+", "b"]
NOTE_TO_SEMITONE = {"c": 0, "d": 2, "e": 4, "f": 5, "g": 7, "a": 9, "b": 11}

MIDI_MIN = 0
MIDI_MAX = 127
LOWEST_ENCODABLE_PITCH = 12

OCTAVE_MIN = 0
OCTAVE_MAX = 9
DEFAULT_OCTAVE = 4

VOLUME_MIN = 0
VOLUME_MAX = 15
EMITTED_VOLUME_MIN = 6
EMITTED_VOLUME_MAX = 15
DEFAULT_DECODE_VOLUME = 12

DEFAULT_PPQ = 480
DEFAULT_BPM = 120
ENCODE_BPM_MIN = 30
ENCODE_BPM_MAX = 300
DECODE_BPM_MIN = 20
DECODE_BPM_MAX = 400

DEFAULT_VELOCITY = 0.7
DEFAULT_MELODY_VELOCITY = 0.7
DEFAULT_HARMONY_VELOCITY = 0.65

QUARTERS_PER_WHOLE = 4
BEATS_PER_BAR = 4
DEFAULT_LENGTH_DENOMINATOR = 4
DURATION_DENOMINATORS = (1, 2, 4, 8, 16, 32, 64)

SCORE_EPSILON = 1e-9
SECONDS_PER_MINUTE = 60.0

LOG_PREVIEW_CHARS = 160

SERVICE_HOST = "127.0.0.1"
SERVICE_PORT = 8765
