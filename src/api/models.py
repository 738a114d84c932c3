"""Pydantic response schemas for the Meeting Minutes API."""

from __future__ import annotations

from pydantic import BaseModel

from src.pipeline_config import PipelineStage


class MeetingMinutesResponse(BaseModel):
    """Response body for the /api/meeting-minutes endpoint."""

    transcript: str
    markdown: str
    transcript_ready: bool
    meeting_minutes_ready: bool
    stage: PipelineStage
    failed_chunks: list[int] = []
    used_fallback_summary: bool = False
