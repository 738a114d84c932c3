"""Meeting-minutes endpoint: upload a recording, get transcript and minutes."""

from __future__ import annotations

import logging
import re
from typing import Annotated

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from src.api.models import MeetingMinutesResponse
from src.config import get_settings
from src.pipeline.errors import AudioProcessingError, ProviderNotConfiguredError
from src.pipeline.processor import build_processor
from src.pipeline_config import PipelineConfig

logger = logging.getLogger(__name__)

router = APIRouter()

# 50 MB upload limit
MAX_UPLOAD_BYTES = 50 * 1024 * 1024


def parse_topics(raw: str | None) -> tuple[str, ...]:
    """Split a comma- or newline-separated topic list."""
    if not raw:
        return ()
    return tuple(topic.strip() for topic in re.split(r"[,\n،]", raw) if topic.strip())


@router.post("/api/meeting-minutes", response_model=MeetingMinutesResponse)
async def meeting_minutes(
    audio: Annotated[UploadFile, File(...)],
    chunk_duration: Annotated[int | None, Form()] = None,
    sample_rate: Annotated[int | None, Form()] = None,
    language: Annotated[str | None, Form()] = None,
    template: Annotated[str | None, Form()] = None,
    topics: Annotated[str | None, Form()] = None,
) -> MeetingMinutesResponse:
    """Transcribe an uploaded meeting recording and write its minutes.

    Optional form fields override the configured chunk duration (10-50 s),
    sample rate, language (``fa``/``en``), minutes template and topic focus.
    """
    raw = await audio.read()
    if len(raw) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {MAX_UPLOAD_BYTES // (1024 * 1024)} MB.",
        )
    if not raw:
        raise HTTPException(status_code=422, detail="Uploaded audio is empty.")

    settings = get_settings()
    try:
        config = PipelineConfig.from_settings(
            settings,
            chunk_duration_sec=chunk_duration,
            sample_rate=sample_rate,
            language=language,
            template=template or None,
            topics=parse_topics(topics) or None,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    try:
        processor = build_processor(config, settings)
    except ProviderNotConfiguredError as exc:
        raise HTTPException(status_code=501, detail=f"Meeting processing is not configured: {exc}") from exc

    try:
        result = await processor.process_meeting(raw)
    except AudioProcessingError as exc:
        raise HTTPException(status_code=422, detail=f"Could not process audio: {exc}") from exc

    logger.info(
        "Processed %s: %d failed chunks, fallback summary=%s",
        audio.filename or "upload",
        len(result.failed_chunks),
        result.used_fallback_summary,
    )
    return MeetingMinutesResponse(
        transcript=result.transcript,
        markdown=result.markdown,
        transcript_ready=result.transcript_ready,
        meeting_minutes_ready=result.meeting_minutes_ready,
        stage=result.stage,
        failed_chunks=result.failed_chunks,
        used_fallback_summary=result.used_fallback_summary,
    )
