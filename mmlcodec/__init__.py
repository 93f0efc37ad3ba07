from .converter import convert_tracks, cut_tracks, decode_score
from .errors import EmptyInputError, MalformedScoreError, MmlCodecError
from .midi_utils import seconds_to_ticks
from .structures import ConversionResult, DecodedScore, NoteEvent, Track
from .tuning import DEFAULT_TUNING, CodecTuning

__all__ = [
    "CodecTuning",
    "ConversionResult",
    "DEFAULT_TUNING",
    "DecodedScore",
    "EmptyInputError",
    "MalformedScoreError",
    "MmlCodecError",
    "NoteEvent",
    "Track",
    "convert_tracks",
    "cut_tracks",
    "decode_score",
    "seconds_to_ticks",
]
