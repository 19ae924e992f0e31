"""
Timestamp Resolver

Turns whatever timing the model returned for a candidate into seconds:

1. Explicit `startTime`/`endTime` numbers are trusted as seconds.
2. Otherwise `start`/`end` may be 1-indexed SRT line numbers. They are
   treated as such when both are integers, end > start >= 0 and at least one
   of them is below LINE_NUMBER_LIMIT.
3. Anything else passes through unchanged as seconds.
"""
import logging
from typing import Any, List, Tuple

from chacotero.models import CallCandidate, TranscriptSegment

logger = logging.getLogger(__name__)

LINE_NUMBER_LIMIT = 10000


def is_number(value: Any) -> bool:
    """True for ints and floats (bool excluded)"""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


def looks_like_line_numbers(start: Any, end: Any) -> bool:
    """Heuristic: small positive integers are SRT line numbers, not seconds"""
    if not (_is_integer(start) and _is_integer(end)):
        return False
    return start >= 0 and end > start and (start < LINE_NUMBER_LIMIT or end < LINE_NUMBER_LIMIT)


def line_numbers_to_seconds(start_line: int, end_line: int, segments: List[TranscriptSegment]) -> Tuple[float, float]:
    """Map 1-indexed line numbers onto segment times, clamping to the timeline"""
    last_index = len(segments) - 1
    start_index = max(0, min(int(start_line) - 1, last_index))
    end_index = max(0, min(int(end_line) - 1, last_index))
    return segments[start_index].start, segments[end_index].end


def resolve_timestamps(candidate: CallCandidate, segments: List[TranscriptSegment]) -> Tuple[Any, Any]:
    """
    Resolve a candidate's boundaries to seconds.

    Returns:
        (start, end). Values the resolver cannot interpret are returned
        untouched; the Boundary Validator rejects non-numeric ones.
    """
    if is_number(candidate.start_time) and is_number(candidate.end_time):
        return candidate.start_time, candidate.end_time

    start, end = candidate.start, candidate.end
    if not segments:
        return start, end

    if looks_like_line_numbers(start, end):
        start_seconds, end_seconds = line_numbers_to_seconds(start, end, segments)
        logger.info(f"Candidate lines {start}-{end} resolved to {start_seconds:.2f}s-{end_seconds:.2f}s")
        return start_seconds, end_seconds

    return start, end


def resolve_candidate(candidate: CallCandidate, segments: List[TranscriptSegment]) -> CallCandidate:
    """Copy of `candidate` with `start`/`end` replaced by resolved values"""
    start, end = resolve_timestamps(candidate, segments)
    return candidate.model_copy(update={"start": start, "end": end})
