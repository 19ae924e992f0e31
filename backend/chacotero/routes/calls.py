"""
Call Routes
"""
import logging
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from chacotero.errors import (
    ChacoteroError,
    ConfigurationError,
    EmbeddingError,
    LLMConnectionError,
    NotFoundError,
    ValidationError,
)
from chacotero.models import CallRecord, ProcessCallResult, SearchHit, TranscriptSegment
from chacotero.services.call_separation_service import get_call_separation_service
from chacotero.services.call_store import get_call_store
from chacotero.services.metadata_service import get_metadata_service
from chacotero.services.similarity_service import get_similarity_service
from chacotero.services.srt_service import generate_min_srt, generate_srt, parse_srt

logger = logging.getLogger(__name__)

router = APIRouter()

REGENERATED_FIELDS = (
    "title", "description", "summary", "name", "age", "topic", "tags",
    "thumbnailScene", "startText", "endText",
)


class SeparateRequest(BaseModel):
    """Call separation request: SRT text, or segments plus transcript"""
    srt: Optional[str] = Field(None, description="Full SRT transcript")
    segments: Optional[List[TranscriptSegment]] = None
    transcription: Optional[str] = Field(None, description="Transcript sent to the model")
    video_id: str = ""


class SeparateResponse(BaseModel):
    """Separated calls in the camelCase shape used by call records"""
    calls: List[Dict[str, Any]]
    total: int


class CallReference(BaseModel):
    """Identifies a stored call by fileName, callId or metadata path"""
    file_name: Optional[str] = None
    call_id: Optional[str] = None
    metadata_path: Optional[str] = None


class RegenerateMetadataRequest(CallReference):
    """Metadata regeneration request"""
    transcription: Optional[str] = Field(None, description="Defaults to the record's transcription")
    target: Literal["all", "summary", "title", "scene"] = Field(
        "all", description="all: every generated field; summary: search summary only; "
                            "title, scene: regenerated from the stored summary"
    )


class SearchRequest(BaseModel):
    """Semantic search request"""
    query: str
    top_k: int = 10
    min_score: float = 0.0


class SearchResponse(BaseModel):
    """Semantic search response"""
    query: str
    results: List[SearchHit]
    total: int
    top_k: int
    min_score: float


class SimilarityResponse(ProcessCallResult):
    """Similarity outcome for one stored call"""
    file_name: str
    current_call_description: Optional[str] = None
    message: str = ""


class UploadResponse(BaseModel):
    """Embedding upload outcome"""
    file_name: str
    uploaded: bool
    pinecone_id: Optional[str] = None


class DeleteResponse(BaseModel):
    """Index deletion outcome"""
    file_name: str
    deleted: bool


def to_http_exception(error: Exception) -> HTTPException:
    """Map pipeline errors onto HTTP status codes"""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, ConfigurationError):
        return HTTPException(status_code=503, detail=str(error))
    if isinstance(error, (LLMConnectionError, EmbeddingError)):
        return HTTPException(status_code=502, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _resolve_file_name(reference: CallReference) -> str:
    if reference.file_name:
        return reference.file_name
    if reference.call_id:
        record = await get_call_store().find_by_call_id(reference.call_id)
        if record is None:
            raise NotFoundError(f"No call found with callId {reference.call_id}")
        return record.reference
    if reference.metadata_path:
        return PurePath(reference.metadata_path.replace("\\", "/")).stem
    raise ValidationError("file_name, call_id or metadata_path is required")


async def _load(reference: CallReference):
    file_name = await _resolve_file_name(reference)
    record = await get_call_store().read(file_name)
    return file_name, record


def _require_uploaded(record: CallRecord) -> None:
    if not (record.model_extra or {}).get("pineconeUploaded"):
        raise ValidationError("This call is not uploaded to Pinecone; upload it first")


def _similarity_message(result: ProcessCallResult) -> str:
    if result.duplicate_of:
        return (
            f"Found {len(result.duplicate_of)} duplicate(s) and "
            f"{len(result.related_calls)} related call(s)."
        )
    if result.related_calls:
        return f"Found {len(result.related_calls)} related call(s)."
    return "No duplicate or related calls found."


@router.post("/separate", response_model=SeparateResponse)
async def separate_calls(request: SeparateRequest):
    """
    Split a transcript into calls.

    Always returns at least one call when the transcript has segments.
    """
    if request.srt:
        segments = parse_srt(request.srt)
        transcription = request.transcription or request.srt
    elif request.segments:
        segments = request.segments
        transcription = request.transcription or generate_srt(segments)
    else:
        raise HTTPException(status_code=400, detail="srt or segments is required")

    if not segments:
        raise HTTPException(status_code=400, detail="Transcript has no segments")

    try:
        calls = await get_call_separation_service().separate_calls(
            segments, transcription, video_id=request.video_id
        )
    except ChacoteroError as e:
        raise to_http_exception(e) from e

    return SeparateResponse(
        calls=[call.model_dump(by_alias=True, exclude_none=True) for call in calls],
        total=len(calls)
    )


@router.post("/process", response_model=SimilarityResponse)
async def process_call(reference: CallReference):
    """
    Check a stored call for duplicates and related calls, then upload it.

    Duplicates are never uploaded. The outcome is saved into the call record.
    """
    try:
        file_name, record = await _load(reference)
        result = await get_similarity_service().process_call(record)

        if not result.already_exists:
            await get_call_store().merge_relations(
                file_name,
                result.duplicate_of,
                result.related_calls,
                updates={
                    "pineconeUploaded": result.uploaded,
                    "pineconeId": result.pinecone_id or record.pinecone_id,
                    "isDuplicate": result.is_duplicate,
                    "pineconeCheckedDate": _now(),
                }
            )
    except ChacoteroError as e:
        raise to_http_exception(e) from e

    message = "Call already exists in Pinecone." if result.already_exists else _similarity_message(result)
    return SimilarityResponse(
        **result.model_dump(),
        file_name=file_name,
        current_call_description=record.description or record.summary,
        message=message
    )


@router.post("/upload-to-pinecone", response_model=UploadResponse)
async def upload_to_pinecone(reference: CallReference):
    """Upload a call's embedding without searching for similar calls"""
    try:
        file_name, record = await _load(reference)
        result = await get_similarity_service().upload_embedding_only(record)
        await get_call_store().update(file_name, {
            "pineconeUploaded": result.uploaded,
            "pineconeId": result.pinecone_id,
            "pineconeUploadDate": _now(),
        })
    except ChacoteroError as e:
        raise to_http_exception(e) from e

    return UploadResponse(file_name=file_name, **result.model_dump())


@router.post("/resubmit-embedding", response_model=UploadResponse)
async def resubmit_embedding(reference: CallReference):
    """Regenerate and re-upload the embedding of an already uploaded call"""
    try:
        file_name, record = await _load(reference)
        _require_uploaded(record)
        result = await get_similarity_service().upload_embedding_only(record)
        await get_call_store().update(file_name, {
            "pineconeUploaded": result.uploaded,
            "pineconeId": result.pinecone_id,
            "pineconeResubmitDate": _now(),
        })
    except ChacoteroError as e:
        raise to_http_exception(e) from e

    return UploadResponse(file_name=file_name, **result.model_dump())


@router.post("/revalidate", response_model=SimilarityResponse)
async def revalidate_call(reference: CallReference):
    """
    Re-check an uploaded call against the index.

    The fresh duplicate/related lists replace the ones stored on the record.
    """
    try:
        file_name, record = await _load(reference)
        _require_uploaded(record)
        result = await get_similarity_service().revalidate_call(record)
        await get_call_store().update(file_name, {
            "isDuplicate": result.is_duplicate,
            "duplicateOf": result.duplicate_of,
            "relatedCalls": result.related_calls,
            "pineconeRevalidatedDate": _now(),
        })
    except ChacoteroError as e:
        raise to_http_exception(e) from e

    return SimilarityResponse(
        **result.model_dump(),
        file_name=file_name,
        current_call_description=record.description or record.summary,
        message=_similarity_message(result)
    )


@router.post("/search", response_model=SearchResponse)
async def search_calls(request: SearchRequest):
    """Semantic search over uploaded calls"""
    try:
        results = await get_similarity_service().search_calls(
            request.query, top_k=request.top_k, min_score=request.min_score
        )
    except ChacoteroError as e:
        raise to_http_exception(e) from e

    return SearchResponse(
        query=request.query.strip(),
        results=results,
        total=len(results),
        top_k=request.top_k,
        min_score=request.min_score
    )


@router.post("/delete-from-pinecone", response_model=DeleteResponse)
async def delete_from_pinecone(reference: CallReference):
    """Remove a call's vector from the index"""
    try:
        file_name = await _resolve_file_name(reference)
        deleted = await get_similarity_service().delete_call(file_name)
        if deleted and await get_call_store().exists(file_name):
            await get_call_store().update(file_name, {"pineconeUploaded": False})
    except ChacoteroError as e:
        raise to_http_exception(e) from e

    return DeleteResponse(file_name=file_name, deleted=deleted)


@router.post("/regenerate-metadata")
async def regenerate_metadata(request: RegenerateMetadataRequest):
    """
    Regenerate a call's AI metadata.

    `all` and `summary` work from the transcription (SRT input is reduced to
    its spoken text first); `title` and `scene` work from the stored summary.
    Generated fields overwrite the stored ones; everything else is kept.
    """
    try:
        file_name, record = await _load(request)
        service = get_metadata_service()

        if request.target in ("title", "scene"):
            if not record.summary:
                raise ValidationError(f"Call {file_name} has no summary to generate a {request.target} from")
            if request.target == "title":
                generated = {"title": await service.generate_title(record.summary)}
            else:
                generated = {"thumbnailScene": await service.generate_thumbnail_scene(record.summary)}
        else:
            transcription = request.transcription or (record.model_extra or {}).get("transcription")
            if not transcription:
                raise ValidationError(f"Call {file_name} has no transcription to generate metadata from")
            if "-->" in transcription:
                transcription = generate_min_srt(transcription)

            if request.target == "summary":
                generated = {"summary": await service.generate_summary_from_transcription(transcription)}
            else:
                metadata = await service.generate_metadata_from_transcription(transcription)
                generated = {key: value for key, value in metadata.items() if key in REGENERATED_FIELDS}
                if not generated.get("thumbnailScene"):
                    generated["thumbnailScene"] = await service.generate_thumbnail_scene(generated["summary"])

        updated = await get_call_store().update(file_name, {
            **generated,
            "metadataRegeneratedDate": _now(),
        })
    except ChacoteroError as e:
        raise to_http_exception(e) from e

    logger.info(f"Metadata regenerated for {file_name} ({request.target}): {sorted(generated)}")
    return {"file_name": file_name, "metadata": updated.to_json_dict()}
