"""
Tests for SRT utilities
"""
import pytest

from chacotero.models import TranscriptSegment
from chacotero.services.srt_service import (
    format_srt_time,
    generate_min_srt,
    generate_srt,
    parse_srt,
    sanitize_filename,
)

SRT = """1
00:00:00,000 --> 00:00:02,500
Buenas noches, ¿con quién hablo?

2
00:00:02,500 --> 00:01:05,040
Hola, soy Ana
y llamo desde Lima.

3
01:00:00,000 --> 01:00:01,001
Gracias.
"""


class TestParseSrt:
    """Test cases for parse_srt"""

    def test_parses_cues(self):
        segments = parse_srt(SRT)

        assert len(segments) == 3
        assert segments[0] == TranscriptSegment(start=0, end=2.5, text="Buenas noches, ¿con quién hablo?")
        assert segments[1].end == pytest.approx(65.04)
        assert segments[1].text == "Hola, soy Ana y llamo desde Lima."
        assert segments[2].start == 3600

    def test_handles_windows_line_endings(self):
        assert len(parse_srt(SRT.replace("\n", "\r\n"))) == 3

    def test_skips_blocks_without_timing(self):
        assert parse_srt("1\nsin tiempo\n\n2\n00:00:01,000 --> 00:00:02,000\nok\n") == [
            TranscriptSegment(start=1, end=2, text="ok")
        ]

    def test_empty_input(self):
        assert parse_srt("") == []


class TestGenerateSrt:
    """Test cases for SRT rendering"""

    def test_format_srt_time(self):
        assert format_srt_time(0) == "00:00:00,000"
        assert format_srt_time(3725.042) == "01:02:05,042"

    def test_generate_shifts_by_offset(self):
        segments = [
            TranscriptSegment(start=60, end=61.5, text=" hola "),
            TranscriptSegment(start=61.5, end=63, text="chau"),
        ]

        srt = generate_srt(segments, offset=60)

        assert srt == (
            "1\n00:00:00,000 --> 00:00:01,500\nhola\n\n"
            "2\n00:00:01,500 --> 00:00:03,000\nchau\n\n"
        )

    def test_negative_times_clamp_to_zero(self):
        srt = generate_srt([TranscriptSegment(start=5, end=12, text="x")], offset=10)

        assert "00:00:00,000 --> 00:00:02,000" in srt

    def test_generated_srt_parses_back(self):
        segments = parse_srt(SRT)

        assert parse_srt(generate_srt(segments)) == segments

    def test_min_srt_keeps_only_text(self):
        assert generate_min_srt(SRT) == (
            "Buenas noches, ¿con quién hablo?\nHola, soy Ana\ny llamo desde Lima.\nGracias."
        )


class TestSanitizeFilename:
    """Test cases for sanitize_filename"""

    def test_removes_invalid_characters(self):
        assert sanitize_filename('a<b>c:d"e/f\\g|h?i*j') == "abcdefghij"

    def test_collapses_whitespace(self):
        assert sanitize_filename("  Llamada   de\tAna  ") == "Llamada de Ana"

    def test_limits_length(self):
        assert len(sanitize_filename("x" * 300)) == 200
