from __future__ import annotations


class MmlCodecError(ValueError):
    """Base error for the MML codec."""


class EmptyInputError(MmlCodecError):
    """Raised when the source contains no playable note at all."""


class MalformedScoreError(MmlCodecError):
    """Raised when a text score lacks the melody/chord1/chord2 block structure."""
