from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence, Tuple

from .constants import DEFAULT_BPM, DEFAULT_PPQ, SPLIT_MODES, SPLIT_SEQUENTIAL
from .errors import MalformedScoreError
from .logger_config import logger
from .structures import ScoreBlock, ScoreMeta

META_PATTERN = re.compile(r"^#META[ \t]+(.*)$", re.MULTILINE)
META_FIELD_PATTERN = re.compile(r"(\w+)=(\S+)")
MML_PATTERN = re.compile(r"MML@([\s\S]*?);")
SEGMENT_TICKS_PATTERN = re.compile(r"SegmentTicks:[ \t]*(\d+)")
LABELLED_BLOCK_PATTERN = re.compile(
    r"Melody:[ \t]*\d+[ \t]*\r?\n([^\r\n]*)\r?\n"
    r"Chord1:[ \t]*\d+[ \t]*\r?\n([^\r\n]*)\r?\n"
    r"Chord2:[ \t]*\d+[ \t]*\r?\n([^\r\n]*)"
)


def render_meta(meta: ScoreMeta) -> str:
    return (
        f"#META totalTicks={meta.total_ticks} ppq={meta.ppq} players={meta.players} "
        f"split={meta.split} bpm={meta.bpm}"
    )


def render_block(index: int, block: ScoreBlock) -> str:
    lines = [f"[Player {index + 1}]"]
    if block.segment_ticks is not None:
        lines.append(f"SegmentTicks: {block.segment_ticks}")
    lines.extend(
        [
            f"Melody: {len(block.melody)}",
            block.melody,
            f"Chord1: {len(block.chord1)}",
            block.chord1,
            f"Chord2: {len(block.chord2)}",
            block.chord2,
            f"MML@{block.melody},{block.chord1},{block.chord2};",
        ]
    )
    return "\n".join(lines)


def render_score(meta: ScoreMeta, blocks: Sequence[ScoreBlock]) -> str:
    bodies = "\n\n".join(render_block(index, block) for index, block in enumerate(blocks))
    return f"{render_meta(meta)}\n\n{bodies}\n"


def split_mml_parts(raw: str) -> Tuple[str, str, str]:
    parts = raw.split(",")
    if len(parts) < 3:
        raise MalformedScoreError(f"MML@ block needs melody,chord1,chord2 parts, got {len(parts)}")
    return parts[0].strip(), parts[1].strip(), ",".join(parts[2:]).strip()


def _parse_blocks(text: str) -> List[ScoreBlock]:
    blocks: List[ScoreBlock] = []
    previous_end = 0
    for match in MML_PATTERN.finditer(text):
        raw = re.sub(r"\r?\n", "", match.group(1)).strip()
        preamble = text[previous_end : match.start()]
        previous_end = match.end()
        if not raw:
            continue
        melody, chord1, chord2 = split_mml_parts(raw)
        declared = SEGMENT_TICKS_PATTERN.findall(preamble)
        blocks.append(
            ScoreBlock(
                melody=melody,
                chord1=chord1,
                chord2=chord2,
                segment_ticks=int(declared[-1]) if declared else None,
            )
        )
    if blocks:
        return blocks

    for match in LABELLED_BLOCK_PATTERN.finditer(text):
        blocks.append(ScoreBlock(melody=match.group(1).strip(), chord1=match.group(2).strip(), chord2=match.group(3).strip()))
    return blocks


def _int_field(fields: Dict[str, str], key: str, default: int) -> int:
    value = fields.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring non-integer score header field %s=%s", key, value)
        return default


def parse_meta(text: str, block_count: int) -> ScoreMeta:
    match = META_PATTERN.search(text)
    fields: Dict[str, str] = dict(META_FIELD_PATTERN.findall(match.group(1))) if match else {}
    if match is None:
        logger.warning("Score has no #META header; using defaults")

    split: Optional[str] = fields.get("split")
    if split not in SPLIT_MODES:
        if split is not None:
            logger.warning("Unknown split mode %r in score header; reading as %s", split, SPLIT_SEQUENTIAL)
        split = SPLIT_SEQUENTIAL

    return ScoreMeta(
        total_ticks=max(0, _int_field(fields, "totalTicks", 0)),
        ppq=max(1, _int_field(fields, "ppq", DEFAULT_PPQ)),
        players=max(1, _int_field(fields, "players", max(1, block_count))),
        split=split,
        bpm=_int_field(fields, "bpm", DEFAULT_BPM),
    )


def parse_score(text: str) -> Tuple[ScoreMeta, List[ScoreBlock]]:
    """Read the header and every melody/chord1/chord2 block of a text score.

    ``MML@melody,chord1,chord2;`` blocks are preferred; a score without any
    falls back to the labelled ``Melody:``/``Chord1:``/``Chord2:`` lines.
    """
    text = text or ""
    blocks = _parse_blocks(text)
    if not blocks:
        raise MalformedScoreError("Score contains no MML@ block and no Melody/Chord1/Chord2 block")
    return parse_meta(text, len(blocks)), blocks
