"""Classify heterogeneous speech-to-text responses and flatten them to text.

Providers answer with a bare string, an object with a ``text`` field, or a
diarized payload holding only ``segments``/``utterances``/``words``. Each shape
has its own normaliser; :func:`normalize_response` never raises.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from src.transcription.models import (
    DiarizedResponse,
    PlainTextResponse,
    ProviderResponse,
    SpeakerTurn,
    TextFieldResponse,
    UnrecognizedResponse,
)

_TEXT_KEYS = ("text", "transcription")
_TURN_KEYS = ("segments", "utterances", "words")
_SPEAKER_KEYS = ("speaker", "speaker_id", "speaker_label")


def _to_dict(value: Any) -> dict[str, Any] | None:
    if isinstance(value, dict):
        return value
    if hasattr(value, "model_dump"):
        dumped = value.model_dump()  # pydantic style
        return dumped if isinstance(dumped, dict) else None
    if hasattr(value, "to_dict"):
        dumped = value.to_dict()
        return dumped if isinstance(dumped, dict) else None
    if hasattr(value, "__dict__"):
        return {k: v for k, v in vars(value).items() if not k.startswith("_")}
    return None


def _parse_speaker(raw: dict[str, Any]) -> str | None:
    for key in _SPEAKER_KEYS:
        val = raw.get(key)
        if val is not None and str(val).strip():
            return str(val)
    return None


def _parse_turns(raw_turns: list[Any]) -> tuple[tuple[SpeakerTurn, ...], str]:
    turns: list[SpeakerTurn] = []
    has_spacing = False
    for raw in raw_turns:
        if isinstance(raw, str):
            turns.append(SpeakerTurn(text=raw))
            continue
        item = _to_dict(raw)
        if item is None:
            continue
        kind = item.get("type")
        if kind == "spacing":
            has_spacing = True
        text = item.get("text")
        if not isinstance(text, str):
            continue
        turns.append(SpeakerTurn(text=text, speaker=_parse_speaker(item)))
    return tuple(turns), "" if has_spacing else " "


def classify_response(raw: Any) -> ProviderResponse:
    """Tag a raw provider response with its shape.

    A non-empty text field wins over turn arrays. An empty text field defers
    to turns when there are any and otherwise means silence. Only payloads
    without a text field are kept for serialisation.
    """
    if raw is None:
        return PlainTextResponse(text="")
    if isinstance(raw, str):
        return PlainTextResponse(text=raw)
    if isinstance(raw, bytes):
        return PlainTextResponse(text=raw.decode("utf-8", errors="replace"))

    payload = _to_dict(raw)
    if payload is None:
        return UnrecognizedResponse(raw=raw)

    text_field: str | None = None
    for key in _TEXT_KEYS:
        value = payload.get(key)
        if isinstance(value, str):
            text_field = value
            break
    if text_field is not None and text_field.strip():
        return TextFieldResponse(text=text_field)

    for key in _TURN_KEYS:
        raw_turns = payload.get(key)
        if isinstance(raw_turns, list) and raw_turns:
            turns, joiner = _parse_turns(raw_turns)
            if turns:
                return DiarizedResponse(turns=turns, joiner=joiner)

    if text_field is not None:
        return TextFieldResponse(text=text_field)
    return UnrecognizedResponse(raw=payload)


def normalize_plain(response: PlainTextResponse) -> str:
    return response.text.strip()


def normalize_text_field(response: TextFieldResponse) -> str:
    return response.text.strip()


def normalize_diarized(response: DiarizedResponse) -> str:
    """Synthesise ``speaker: text`` lines, merging consecutive turns by speaker.

    Without any speaker labels the turn texts are simply joined.
    """
    if not any(turn.speaker for turn in response.turns):
        return response.joiner.join(turn.text for turn in response.turns).strip()

    runs: list[tuple[str | None, list[str]]] = []
    for turn in response.turns:
        if runs and runs[-1][0] == turn.speaker:
            runs[-1][1].append(turn.text)
        else:
            runs.append((turn.speaker, [turn.text]))

    lines: list[str] = []
    for speaker, texts in runs:
        text = response.joiner.join(texts).strip()
        if not text:
            continue
        lines.append(f"{speaker}: {text}" if speaker else text)
    return "\n".join(lines)


def normalize_unrecognized(response: UnrecognizedResponse) -> str:
    try:
        return json.dumps(response.raw, ensure_ascii=False, default=str, sort_keys=True)
    except (TypeError, ValueError):
        return str(response.raw)


_NORMALIZERS: dict[type, Callable[[Any], str]] = {
    PlainTextResponse: normalize_plain,
    TextFieldResponse: normalize_text_field,
    DiarizedResponse: normalize_diarized,
    UnrecognizedResponse: normalize_unrecognized,
}


def normalize_response(raw: Any) -> str:
    """Flatten any provider response to transcript text, deterministically."""
    response = classify_response(raw)
    return _NORMALIZERS[type(response)](response)
