"""
Boundary Validator

Filters candidate calls with impossible timing and snaps the survivors onto
real segment boundaries, so every validated call starts at some segment's
start and ends at some segment's end.
"""
import logging
from typing import List, Optional

from chacotero.errors import BoundaryError
from chacotero.models import CallCandidate, TranscriptSegment, ValidatedCall, total_duration
from chacotero.services.timestamp_resolver import is_number

logger = logging.getLogger(__name__)

_TIMING_FIELDS = {"start", "end", "start_time", "end_time"}


def check_bounds(candidate: CallCandidate, duration: float) -> None:
    """Raise BoundaryError unless 0 <= start < end <= duration"""
    start, end = candidate.start, candidate.end
    if not (is_number(start) and is_number(end)):
        raise BoundaryError(f"timestamps are not numbers (start={start!r}, end={end!r})")
    if start < 0:
        raise BoundaryError(f"negative start ({start})")
    if end > duration:
        raise BoundaryError(f"end {end} exceeds total duration {duration}")
    if start >= end:
        raise BoundaryError(f"start {start} is not before end {end}")


def snap_start(value: float, segments: List[TranscriptSegment]) -> Optional[float]:
    """Start of the segment containing `value`; inside a gap, the next segment's start"""
    for segment in segments:
        if segment.start <= value < segment.end:
            return segment.start
    for segment in segments:
        if segment.start <= value <= segment.end:
            return segment.start
    for segment in segments:
        if segment.start > value:
            return segment.start
    return None


def snap_end(value: float, segments: List[TranscriptSegment]) -> Optional[float]:
    """End of the segment containing `value`; otherwise the last segment ending before it"""
    for segment in segments:
        if segment.start < value <= segment.end:
            return segment.end
    for segment in segments:
        if segment.start <= value <= segment.end:
            return segment.end
    before = [segment for segment in segments if segment.end <= value]
    if before:
        return before[-1].end
    return None


def slice_transcription(segments: List[TranscriptSegment], start: float, end: float) -> str:
    """Join the text of segments lying entirely within [start, end]"""
    return " ".join(
        segment.text.strip()
        for segment in segments
        if segment.start >= start and segment.end <= end and segment.text.strip()
    )


def whole_transcript_call(segments: List[TranscriptSegment], full_transcription: str) -> ValidatedCall:
    """Fallback: the entire recording as a single call with no AI metadata"""
    start = segments[0].start if segments else 0.0
    end = segments[-1].end if segments else 0.0
    return ValidatedCall(start=start, end=end, transcription=full_transcription or "")


def validate_and_adjust(
    candidates: List[CallCandidate],
    segments: List[TranscriptSegment],
    full_transcription: str = ""
) -> List[ValidatedCall]:
    """
    Validate resolved candidates against the timeline and snap their edges.

    Rejected candidates are logged and dropped. Non-timing fields pass
    through unchanged; each call's transcription is re-sliced from the
    segments it covers (falling back to `full_transcription` when empty).
    """
    if not segments:
        logger.warning("No transcript segments available to validate calls against")
        return []

    duration = total_duration(segments)
    validated: List[ValidatedCall] = []

    for index, candidate in enumerate(candidates, start=1):
        try:
            check_bounds(candidate, duration)
            start = snap_start(candidate.start, segments)
            end = snap_end(candidate.end, segments)
            if start is None or end is None or start >= end:
                raise BoundaryError(
                    f"no segment-aligned span inside {candidate.start}-{candidate.end}"
                )
        except BoundaryError as e:
            logger.warning(f"Call candidate {index} rejected: {e}")
            continue

        if start != candidate.start or end != candidate.end:
            logger.debug(f"Call candidate {index} snapped {candidate.start}-{candidate.end} -> {start}-{end}")

        metadata = candidate.model_dump(exclude=_TIMING_FIELDS)
        validated.append(ValidatedCall(
            **metadata,
            start=start,
            end=end,
            transcription=slice_transcription(segments, start, end) or full_transcription or ""
        ))

    logger.info(f"Boundary validation: {len(validated)} of {len(candidates)} calls accepted")
    return validated
