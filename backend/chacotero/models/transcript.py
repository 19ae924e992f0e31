"""
Transcript models

A transcript is an ordered list of timestamped segments produced by the
transcription step. The segment list is the authoritative timeline that every
call boundary is validated against.
"""
from typing import List

from pydantic import BaseModel, Field


class TranscriptSegment(BaseModel):
    """A timestamped unit of transcribed speech (times in seconds)"""
    start: float = Field(..., ge=0, description="Segment start in seconds")
    end: float = Field(..., ge=0, description="Segment end in seconds")
    text: str = Field(default="", description="Transcribed text")

    class Config:
        frozen = True


def total_duration(segments: List[TranscriptSegment]) -> float:
    """Duration of the timeline: the end of the last segment"""
    if not segments:
        return 0.0
    return segments[-1].end
