"""
SRT utilities

Conversion between SRT subtitle text and transcript segments, plus the
filename sanitizer used for every per-call artifact on disk.
"""
import logging
import re
from typing import Iterable, List

from chacotero.models import TranscriptSegment

logger = logging.getLogger(__name__)

MAX_FILENAME_LENGTH = 200

_TIMESTAMP = r"(\d{1,2}):(\d{2}):(\d{2})[,.](\d{1,3})"
_TIMING_LINE = re.compile(rf"^\s*{_TIMESTAMP}\s*-->\s*{_TIMESTAMP}")
_SEQUENCE_LINE = re.compile(r"^\d+$")
_MIN_SKIP_TIMING = re.compile(r"^\d{2}:\d{2}:\d{2},\d{3}\s*-->\s*\d{2}:\d{2}:\d{2},\d{3}$")
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')


def _to_seconds(hours: str, minutes: str, seconds: str, millis: str) -> float:
    return int(hours) * 3600 + int(minutes) * 60 + int(seconds) + int(millis.ljust(3, "0")) / 1000


def format_srt_time(seconds: float) -> str:
    """Format seconds as HH:MM:SS,mmm"""
    seconds = max(0.0, float(seconds))
    total_millis = int(round(seconds * 1000))
    hours, remainder = divmod(total_millis, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, millis = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def parse_srt(text: str) -> List[TranscriptSegment]:
    """
    Parse SRT text into ordered segments.

    Blocks without a valid timing line are skipped; multi-line cue text is
    joined with spaces.
    """
    segments: List[TranscriptSegment] = []
    if not text:
        return segments

    for block in re.split(r"\r?\n\s*\r?\n", text.strip()):
        lines = [line.strip() for line in block.splitlines() if line.strip()]
        for index, line in enumerate(lines):
            match = _TIMING_LINE.match(line)
            if not match:
                continue
            groups = match.groups()
            start = _to_seconds(*groups[:4])
            end = _to_seconds(*groups[4:])
            if end < start:
                logger.warning(f"Skipping SRT cue with end before start: {line}")
                break
            segments.append(TranscriptSegment(
                start=start,
                end=end,
                text=" ".join(lines[index + 1:])
            ))
            break

    return segments


def generate_srt(segments: Iterable[TranscriptSegment], offset: float = 0.0) -> str:
    """
    Render segments as SRT text.

    `offset` is subtracted from every timestamp, so a call cut out of a longer
    recording can carry subtitles that start at zero. Negative times clamp to 0.
    """
    blocks = []
    for number, segment in enumerate(segments, start=1):
        start = format_srt_time(max(0.0, segment.start - offset))
        end = format_srt_time(max(0.0, segment.end - offset))
        blocks.append(f"{number}\n{start} --> {end}\n{segment.text.strip()}\n")
    return "\n".join(blocks) + ("\n" if blocks else "")


def generate_min_srt(srt_content: str) -> str:
    """Keep only the spoken text of an SRT document, one cue line per line"""
    text_lines = []
    for line in (srt_content or "").split("\n"):
        line = line.strip()
        if not line or _SEQUENCE_LINE.match(line) or _MIN_SKIP_TIMING.match(line):
            continue
        text_lines.append(line)
    return "\n".join(text_lines)


def sanitize_filename(filename: str) -> str:
    """Drop characters invalid on common filesystems and cap the length"""
    cleaned = _INVALID_FILENAME_CHARS.sub("", filename or "")
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return cleaned[:MAX_FILENAME_LENGTH]
