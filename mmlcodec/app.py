from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from .constants import APP_NAME, SERVICE_HOST, SERVICE_PORT
from .converter import convert_tracks, decode_score
from .errors import EmptyInputError, MalformedScoreError
from .logger_config import logger
from .midi_utils import normalize_note
from .models import DecodeRequest, EncodeRequest, TrackModel
from .structures import Track
from .utils import summarize_text

app = FastAPI(title=APP_NAME)


def to_track(model: TrackModel) -> Track:
    notes = tuple(normalize_note(n.pitch, n.start_tick, n.duration_ticks, n.velocity) for n in model.notes)
    return Track(notes=notes, percussion=model.percussion, name=model.name)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/encode")
def encode(request: EncodeRequest) -> JSONResponse:
    logger.info(
        "Encode: tracks=%d ppq=%d bpm=%s players=%d split=%s compress=%s",
        len(request.tracks),
        request.ppq,
        request.bpm,
        request.players,
        request.split,
        request.compress,
    )
    try:
        result = convert_tracks(
            [to_track(track) for track in request.tracks],
            ppq=request.ppq,
            bpm=request.bpm,
            players=request.players,
            split=request.split,
            compress=request.compress,
        )
    except EmptyInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    players = [
        {
            name: {"length": len(part.text), "truncated": part.truncated, "notes": part.note_event_count}
            for name, part in parts.as_dict().items()
        }
        for parts in result.players
    ]
    logger.info("Encoded score preview: %s", summarize_text(result.text))
    return JSONResponse(
        content={
            "score": result.text,
            "meta": {
                "total_ticks": result.meta.total_ticks,
                "ppq": result.meta.ppq,
                "players": result.meta.players,
                "split": result.meta.split,
                "bpm": result.meta.bpm,
            },
            "parts": players,
        }
    )


@app.post("/decode")
def decode(request: DecodeRequest) -> JSONResponse:
    logger.info("Decode: %d chars, ppq=%d", len(request.score), request.ppq)
    try:
        decoded = decode_score(request.score, request.ppq)
    except MalformedScoreError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    tracks = [
        {
            "name": track.name,
            "notes": [
                {
                    "pitch": note.pitch,
                    "start_tick": note.start_tick,
                    "duration_ticks": note.duration_ticks,
                    "velocity": round(note.velocity, 4),
                }
                for note in track.notes
            ],
        }
        for track in decoded.tracks
    ]
    return JSONResponse(
        content={
            "ppq": decoded.ppq,
            "total_ticks": decoded.total_ticks,
            "tempos": [{"tick": tick, "bpm": bpm} for tick, bpm in decoded.tempos],
            "tracks": tracks,
        }
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=SERVICE_HOST, port=SERVICE_PORT, log_level="info")
