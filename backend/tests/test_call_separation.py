"""
Tests for Call Separation Service

Covers:
- Happy path with explicit timestamps
- Reply shapes ({calls: [...]} and bare objects)
- Whole-transcript fallbacks (unparseable reply, nothing valid)
- Connection retry policy and non-retryable errors
- Progress reporting and prompt dumps
"""
import json
from unittest.mock import AsyncMock, Mock

import httpx
import openai
import pytest

from chacotero.errors import ConfigurationError, LLMConnectionError, LLMRequestError, ParseError
from chacotero.services.call_separation_service import (
    CallSeparationService,
    is_retryable,
    parse_separation_payload,
)

FULL_TEXT = "1\n00:00:00,000 --> 00:01:00,000\nhola\n\n2\n00:01:00,000 --> 00:02:00,000\nchau\n"


class TestCallSeparationService:
    """Test cases for CallSeparationService"""

    @pytest.fixture
    def service(self, mock_llm):
        """Create a CallSeparationService with a mocked chat model"""
        svc = CallSeparationService(llm=mock_llm)
        svc._sleep = AsyncMock()
        return svc

    @pytest.mark.asyncio
    async def test_separates_calls_with_explicit_times(self, service, mock_llm, two_segments):
        mock_llm.complete.return_value = json.dumps({"calls": [
            {"startTime": 0, "endTime": 60, "title": "Primera", "summary": "uno"},
            {"startTime": 60, "endTime": 120, "title": "Segunda", "summary": "dos"},
        ]})

        calls = await service.separate_calls(two_segments, FULL_TEXT, video_id="abc123")

        assert [(c.start, c.end) for c in calls] == [(0, 60), (60, 120)]
        assert [c.title for c in calls] == ["Primera", "Segunda"]
        assert calls[0].transcription == "hola"
        mock_llm.complete.assert_awaited_once()
        system_message, user_message = mock_llm.complete.call_args.args[:2]
        assert FULL_TEXT in user_message
        assert system_message
        assert mock_llm.complete.call_args.kwargs["temperature"] == pytest.approx(0.1)

    @pytest.mark.asyncio
    async def test_single_call_spanning_everything(self, service, mock_llm, two_segments):
        mock_llm.complete.return_value = 'Resultado:\n{"calls": [{"startTime": 0, "endTime": 120}]}'

        calls = await service.separate_calls(two_segments, FULL_TEXT)

        assert len(calls) == 1
        assert (calls[0].start, calls[0].end) == (0, 120)

    @pytest.mark.asyncio
    async def test_bare_call_object_is_accepted(self, service, mock_llm, two_segments):
        mock_llm.complete.return_value = '{"startTime": 0, "endTime": 60, "name": "Ana"}'

        calls = await service.separate_calls(two_segments, FULL_TEXT)

        assert len(calls) == 1
        assert calls[0].name == "Ana"
        assert (calls[0].start, calls[0].end) == (0, 60)

    @pytest.mark.asyncio
    async def test_line_numbers_are_converted(self, service, mock_llm, two_segments):
        mock_llm.complete.return_value = '{"calls": [{"start": 2, "end": 2, "title": "x"}, {"start": 1, "end": 2}]}'

        calls = await service.separate_calls(two_segments, FULL_TEXT)

        assert [(c.start, c.end) for c in calls] == [(0, 120)]

    @pytest.mark.asyncio
    async def test_malformed_reply_falls_back_to_whole_transcript(self, service, mock_llm, two_segments):
        mock_llm.complete.return_value = '{"calls": [{"startTime": 0, "endTime": 60'

        calls = await service.separate_calls(two_segments, FULL_TEXT)

        assert len(calls) == 1
        assert (calls[0].start, calls[0].end) == (0, 120)
        assert calls[0].transcription == FULL_TEXT
        assert calls[0].title is None
        assert calls[0].summary is None

    @pytest.mark.asyncio
    async def test_out_of_range_call_falls_back_to_whole_transcript(self, service, mock_llm, two_segments):
        mock_llm.complete.return_value = '{"calls": [{"startTime": 150, "endTime": 200, "title": "fuera"}]}'

        calls = await service.separate_calls(two_segments, FULL_TEXT)

        assert len(calls) == 1
        assert (calls[0].start, calls[0].end) == (0, 120)
        assert calls[0].title is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", [
        "",
        "no hay llamadas",
        '{"calls": []}',
        '{"result": "ok"}',
        '[{"startTime": 0, "endTime": 60}]',
        '{"calls": ["texto", 3]}',
        '{"calls": [{"startTime": "a", "endTime": "b"}]}',
    ])
    async def test_always_returns_at_least_one_call(self, service, mock_llm, two_segments, reply):
        mock_llm.complete.return_value = reply

        calls = await service.separate_calls(two_segments, FULL_TEXT)

        assert len(calls) >= 1

    @pytest.mark.asyncio
    async def test_retries_connection_errors(self, service, mock_llm, two_segments):
        mock_llm.complete.side_effect = [
            ConnectionError("Connection error."),
            '{"calls": [{"startTime": 0, "endTime": 120}]}',
        ]

        calls = await service.separate_calls(two_segments, FULL_TEXT)

        assert len(calls) == 1
        assert mock_llm.complete.await_count == 2
        service._sleep.assert_awaited_once_with(5.0)

    @pytest.mark.asyncio
    async def test_retries_errors_with_connection_codes(self, service, mock_llm, two_segments):
        error = RuntimeError("socket hang up")
        error.code = "ECONNRESET"
        mock_llm.complete.side_effect = [error, '{"calls": []}']

        await service.separate_calls(two_segments, FULL_TEXT)

        assert mock_llm.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_three_retries(self, service, mock_llm, two_segments):
        mock_llm.complete.side_effect = ConnectionError("ECONNREFUSED")

        with pytest.raises(LLMConnectionError):
            await service.separate_calls(two_segments, FULL_TEXT)

        assert mock_llm.complete.await_count == 4
        assert [c.args[0] for c in service._sleep.await_args_list] == [5.0, 10.0, 15.0]

    @pytest.mark.asyncio
    async def test_non_connection_errors_are_not_retried(self, service, mock_llm, two_segments):
        mock_llm.complete.side_effect = RuntimeError("Rate limit exceeded")

        with pytest.raises(LLMRequestError):
            await service.separate_calls(two_segments, FULL_TEXT)

        assert mock_llm.complete.await_count == 1
        service._sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejected_api_key_is_a_configuration_error(self, service, mock_llm, two_segments):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        mock_llm.complete.side_effect = openai.AuthenticationError(
            "Incorrect API key provided",
            response=httpx.Response(401, request=request),
            body=None
        )

        with pytest.raises(ConfigurationError):
            await service.separate_calls(two_segments, FULL_TEXT)

        assert mock_llm.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_api_key_fails_fast(self, service, mock_llm, two_segments):
        mock_llm.ensure_available.side_effect = ConfigurationError("OPENAI_API_KEY is not configured")

        with pytest.raises(ConfigurationError):
            await service.separate_calls(two_segments, FULL_TEXT)

        mock_llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reports_progress(self, service, mock_llm, two_segments):
        mock_llm.complete.side_effect = [
            ConnectionError("fetch failed"),
            '{"calls": [{"startTime": 0, "endTime": 120}]}',
        ]
        progress = Mock()

        await service.separate_calls(two_segments, FULL_TEXT, progress=progress)

        statuses = [c.args[0] for c in progress.call_args_list]
        assert statuses[0] == "Processing content"
        assert any("Retrying in 5s" in status for status in statuses)
        assert progress.call_args_list[-1].args[1] == 100.0

    @pytest.mark.asyncio
    async def test_failing_progress_callback_is_ignored(self, service, mock_llm, two_segments):
        mock_llm.complete.return_value = '{"calls": [{"startTime": 0, "endTime": 120}]}'
        progress = Mock(side_effect=RuntimeError("observer gone"))

        calls = await service.separate_calls(two_segments, FULL_TEXT, progress=progress)

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_saves_request_when_asked(self, service, mock_llm, two_segments, tmp_path):
        mock_llm.complete.return_value = '{"calls": []}'
        output = tmp_path / "prompt.json"

        await service.separate_calls(two_segments, FULL_TEXT, prompt_output_path=str(output))

        saved = json.loads(output.read_text(encoding="utf-8"))
        assert [m["role"] for m in saved["messages"]] == ["system", "user"]
        assert FULL_TEXT in saved["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_unwritable_prompt_path_is_ignored(self, service, mock_llm, two_segments, tmp_path):
        mock_llm.complete.return_value = '{"calls": [{"startTime": 0, "endTime": 60}]}'

        calls = await service.separate_calls(
            two_segments, FULL_TEXT, prompt_output_path=str(tmp_path / "missing" / "prompt.json")
        )

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_request_candidates_raises_parse_error(self, service, mock_llm):
        mock_llm.complete.return_value = "sin json"

        with pytest.raises(ParseError):
            await service.request_candidates(FULL_TEXT)


class TestParseSeparationPayload:
    """Test cases for reply shape validation"""

    def test_calls_array(self):
        candidates = parse_separation_payload({"calls": [{"start": 1, "end": 2}, {"start": 3, "end": 4}]})

        assert [(c.start, c.end) for c in candidates] == [(1, 2), (3, 4)]

    def test_skips_non_object_items(self):
        candidates = parse_separation_payload({"calls": [{"start": 1, "end": 2}, "ruido", None]})

        assert len(candidates) == 1

    def test_non_object_payload_raises(self):
        with pytest.raises(ParseError):
            parse_separation_payload([{"start": 1, "end": 2}])

    def test_unknown_shape_raises(self):
        with pytest.raises(ParseError):
            parse_separation_payload({"llamadas": []})


class TestIsRetryable:
    """Test cases for the retry predicate"""

    def test_connection_failures_are_retried(self):
        assert is_retryable(ConnectionError("fetch failed"))

    def test_wrapped_errors_are_not_retried(self):
        assert not is_retryable(LLMConnectionError("Connection error."))
        assert not is_retryable(LLMRequestError("network policy violation"))
        assert not is_retryable(RuntimeError("Rate limit exceeded"))
