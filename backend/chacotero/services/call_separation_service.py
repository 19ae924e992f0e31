"""
Call Separation Service

Splits one radio broadcast transcript into independent calls:

1. Render the call-separation prompt with the full SRT transcript
2. Ask the chat model once (retrying only connection-class failures)
3. Sanitize and parse the reply into call candidates
4. Resolve candidate timing to seconds and snap it to segment boundaries

The pipeline never fails because of what the model answered. Unparseable
output, or output where no candidate survives validation, degrades to a
single call covering the whole transcript. Only infrastructure problems
(missing key, exhausted connection retries, rejected requests) propagate.
"""
import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import openai
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from chacotero.errors import (
    ChacoteroError,
    ConfigurationError,
    LLMConnectionError,
    LLMRequestError,
    ParseError,
)
from chacotero.models import CallCandidate, TranscriptSegment, ValidatedCall
from chacotero.services.boundary_validator import validate_and_adjust, whole_transcript_call
from chacotero.services.json_repair import parse_llm_json
from chacotero.services.llm_service import LLMService, get_llm_service, is_connection_error
from chacotero.services.progress import ProgressCallback, report_progress
from chacotero.services.prompt_loader import (
    CALL_SEPARATION_PROMPT,
    TRANSCRIPT_PLACEHOLDER,
    load_prompt_template,
)
from chacotero.services.timestamp_resolver import resolve_candidate
from chacotero.settings import get_settings

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY_STEP_SECONDS = 5.0
RETRY_DELAY_CAP_SECONDS = 15.0


def is_retryable(error: BaseException) -> bool:
    """Only raw connection-class failures are retried"""
    return not isinstance(error, ChacoteroError) and is_connection_error(error)


def parse_separation_payload(payload: Any) -> List[CallCandidate]:
    """
    Validate the parsed model reply into call candidates.

    Accepted shapes are {"calls": [...]} and a single bare call object with
    top-level "start"/"end" (or "startTime"/"endTime"). Items that are not
    objects or fail validation are skipped.

    Raises:
        ParseError: the payload matches neither shape
    """
    if not isinstance(payload, dict):
        raise ParseError(f"Expected a JSON object, got {type(payload).__name__}")

    calls = payload.get("calls")
    if isinstance(calls, list) and calls:
        items = calls
    elif ("start" in payload and "end" in payload) or ("startTime" in payload and "endTime" in payload):
        items = [payload]
    elif isinstance(calls, list):
        items = []
    else:
        raise ParseError("Reply has neither a 'calls' array nor top-level call boundaries")

    candidates: List[CallCandidate] = []
    for position, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            logger.warning(f"Skipping call {position}: expected an object, got {type(item).__name__}")
            continue
        try:
            candidates.append(CallCandidate.model_validate(item))
        except PydanticValidationError as e:
            logger.warning(f"Skipping call {position}: {e.error_count()} invalid field(s)")
    return candidates


class CallSeparationService:
    """Service that turns a transcript into validated call records"""

    def __init__(self, llm: Optional[LLMService] = None):
        """Initialize the call separation service"""
        self.settings = get_settings()
        self.llm: LLMService = llm or get_llm_service()
        self._sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def _save_request(self, path: str, request: Dict[str, Any]) -> None:
        """Dump the outgoing request for debugging; failures are only logged"""
        try:
            content = json.dumps(request, ensure_ascii=False, indent=2)
            await asyncio.to_thread(Path(path).write_text, content, encoding="utf-8")
            logger.info(f"Separation prompt saved to {path}")
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save separation prompt to {path}: {e}")

    async def _request_once(self, system_message: str, user_message: str, video_id: str) -> str:
        """One chat request; only connection-class failures leave this method unwrapped"""
        try:
            return await self.llm.complete(
                system_message, user_message, temperature=self.settings.separation_temperature
            )
        except ConfigurationError:
            raise
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            logger.error(f"Video {video_id}: OpenAI rejected the API key: {e}")
            raise ConfigurationError(f"OpenAI rejected the configured API key: {e}") from e
        except Exception as e:
            if is_connection_error(e):
                raise
            logger.error(f"Video {video_id}: call separation request failed: {e}")
            raise LLMRequestError(f"Call separation request was rejected by the chat API: {e}") from e

    async def _complete_with_retry(
        self,
        system_message: str,
        user_message: str,
        video_id: str,
        progress: Optional[ProgressCallback],
        prompt_output_path: Optional[str]
    ) -> str:
        """Issue the separation request, retrying connection-class failures with linear backoff"""
        request = {
            "model": self.settings.llm_model,
            "messages": [
                {"role": "system", "content": system_message},
                {"role": "user", "content": user_message}
            ],
            "temperature": self.settings.separation_temperature,
        }
        logger.debug(f"Video {video_id}: separation request: {request}")
        if prompt_output_path:
            await self._save_request(prompt_output_path, request)

        def before_sleep(retry_state: RetryCallState) -> None:
            retry = retry_state.attempt_number
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                f"Video {video_id}: connection error ({error}). "
                f"Retrying in {delay:.0f}s ({retry}/{MAX_RETRIES})"
            )
            report_progress(
                progress,
                f"Connection error. Retrying in {delay:.0f}s... ({retry}/{MAX_RETRIES})"
            )

        retrying = AsyncRetrying(
            retry=retry_if_exception(is_retryable),
            stop=stop_after_attempt(MAX_RETRIES + 1),
            wait=wait_incrementing(
                start=RETRY_DELAY_STEP_SECONDS,
                increment=RETRY_DELAY_STEP_SECONDS,
                max=RETRY_DELAY_CAP_SECONDS,
            ),
            before_sleep=before_sleep,
            sleep=self._sleep,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    number = attempt.retry_state.attempt_number
                    status = f"Processing content (retry {number - 1})" if number > 1 else "Processing content"
                    report_progress(progress, status, 0.0, None)
                    logger.info(f"Video {video_id}: calling chat model (attempt {number})")
                    return await self._request_once(system_message, user_message, video_id)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            logger.error(f"Video {video_id}: connection to OpenAI failed after {MAX_RETRIES} retries: {last_error}")
            raise LLMConnectionError(
                "Could not connect to the OpenAI API after several attempts. "
                "Check the network connection and that the API key is valid."
            ) from last_error
        raise LLMConnectionError("Call separation retry loop exited without a reply")

    async def request_candidates(
        self,
        full_transcription: str,
        video_id: str = "",
        progress: Optional[ProgressCallback] = None,
        prompt_output_path: Optional[str] = None
    ) -> List[CallCandidate]:
        """
        Ask the chat model to partition a transcript into call candidates.

        Candidates keep the order the model returned them in.

        Raises:
            ConfigurationError: no API key or malformed prompt template
            LLMConnectionError: connection retries exhausted
            LLMRequestError: request rejected for a non-network reason
            ParseError: reply could not be parsed into a known shape
        """
        self.llm.ensure_available()
        template = load_prompt_template(CALL_SEPARATION_PROMPT, self.settings.prompts_path)
        user_message = template.render(TRANSCRIPT_PLACEHOLDER, full_transcription)
        logger.info(f"Video {video_id}: prompt prepared, length: {len(user_message)}")

        reply = await self._complete_with_retry(
            template.system_message, user_message, video_id, progress, prompt_output_path
        )
        logger.info(f"Video {video_id}: reply received, length: {len(reply)}")

        candidates = parse_separation_payload(parse_llm_json(reply))
        logger.info(f"Video {video_id}: {len(candidates)} call candidate(s) extracted")
        return candidates

    async def separate_calls(
        self,
        segments: List[TranscriptSegment],
        full_transcription: str,
        video_id: str = "",
        progress: Optional[ProgressCallback] = None,
        prompt_output_path: Optional[str] = None
    ) -> List[ValidatedCall]:
        """
        Split a transcript into validated calls.

        Args:
            segments: Transcript timeline (ordered by time)
            full_transcription: Full transcript sent to the model (SRT text)
            video_id: Identifier used in logs
            progress: Optional progress observer
            prompt_output_path: Optional file to dump the outgoing request to

        Returns:
            At least one call whenever `segments` is non-empty; each call's
            start and end coincide with segment boundaries.
        """
        logger.info(f"Video {video_id}: separating calls from {len(segments)} segments")
        started = time.monotonic()

        try:
            candidates = await self.request_candidates(
                full_transcription, video_id, progress, prompt_output_path
            )
        except ParseError as e:
            logger.warning(f"Video {video_id}: using whole transcript as one call ({e})")
            report_progress(progress, "Processing content", 100.0, time.monotonic() - started)
            return [whole_transcript_call(segments, full_transcription)]

        resolved = [resolve_candidate(candidate, segments) for candidate in candidates]
        validated = validate_and_adjust(resolved, segments, full_transcription)

        report_progress(progress, "Processing content", 100.0, time.monotonic() - started)

        if not validated:
            logger.warning(f"Video {video_id}: no valid calls after validation, using whole transcript")
            return [whole_transcript_call(segments, full_transcription)]

        logger.info(f"Video {video_id}: {len(validated)} call(s) separated")
        return validated


# Singleton instance
_call_separation_service: Optional[CallSeparationService] = None


def get_call_separation_service() -> CallSeparationService:
    """Get or create call separation service singleton"""
    global _call_separation_service
    if _call_separation_service is None:
        _call_separation_service = CallSeparationService()
    return _call_separation_service
