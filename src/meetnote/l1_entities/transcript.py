"""Transcript segment entity."""

from __future__ import annotations

from pydantic import BaseModel, Field


class TranscriptSegment(BaseModel):
    """A single transcribed speech segment."""

    text: str
    start: float = Field(description='Offset in seconds from the start of the recording')
    end: float = Field(description='Offset in seconds from the start of the recording')


def join_segments(segments: list[TranscriptSegment]) -> str:
    """Flatten segments into transcript text, one space between segments."""
    return ' '.join(seg.text for seg in segments if seg.text).strip()
