"""
Similarity Service

Deduplication and relation discovery for calls:

1. Skip calls whose callId is already indexed
2. Embed the call's labelled metadata text (see embedding_text)
3. Query the index for the nearest neighbours of that vector
4. Classify neighbours with two inclusive thresholds:
       score >= duplicate_threshold                      -> duplicate
       related_threshold <= score < duplicate_threshold  -> related
5. Report every duplicate/related call, backfilling ones the query missed
6. Append the current call to each neighbour's own adjacency list
7. Upload the vector only when the query found no duplicate

Embedding and index failures propagate. Side-channel work (vector dumps,
description backfill, neighbour record updates) is best-effort.
"""
import logging
import time
from typing import Dict, Iterable, List, Optional

from chacotero.errors import NotFoundError, ValidationError
from chacotero.models import (
    CallRecord,
    Classification,
    ProcessCallResult,
    SearchHit,
    SimilarCallInfo,
    SimilarityMatch,
    UploadResult,
)
from chacotero.services.call_store import CallStore, get_call_store
from chacotero.services.embedding_service import EmbeddingService, get_embedding_service
from chacotero.services.embedding_text import build_embedding_text
from chacotero.services.pinecone_service import PineconeService, get_pinecone_service, index_metadata
from chacotero.services.progress import ProgressCallback, report_progress
from chacotero.settings import get_settings

logger = logging.getLogger(__name__)

# Scores reported for calls known to be related but absent from the live query
SYNTHETIC_DUPLICATE_SCORE = 0.98
SYNTHETIC_RELATED_SCORE = 0.90

SEARCH_MAX_TOP_K = 100


def to_percent(score: float) -> float:
    """Similarity score as a percentage with 4 decimals"""
    return round(score * 100, 4)


def _unique(names: Iterable[Optional[str]], exclude: Iterable[Optional[str]] = ()) -> List[str]:
    skip = {name for name in exclude if name}
    result: List[str] = []
    for name in names:
        if name and name not in skip and name not in result:
            result.append(name)
    return result


def classify(
    matches: List[SimilarityMatch],
    duplicate_threshold: float,
    related_threshold: float,
    current: Optional[str] = None
) -> Classification:
    """
    Split neighbours into duplicates and related calls.

    Both thresholds are inclusive; a score equal to `duplicate_threshold` is
    a duplicate. Matches referring to `current` are ignored.
    """
    duplicates: List[str] = []
    related: List[str] = []

    for match in matches:
        reference = match.reference
        if not reference or reference == current:
            continue
        if match.score >= duplicate_threshold:
            if reference not in duplicates:
                duplicates.append(reference)
                logger.warning(
                    f"Duplicate detected: {current} duplicates {reference} "
                    f"(similarity: {to_percent(match.score):.4f}%)"
                )
        elif match.score >= related_threshold:
            if reference not in related:
                related.append(reference)

    return Classification(
        duplicate_of=duplicates,
        related_calls=[name for name in related if name not in duplicates]
    )


class SimilarityService:
    """Service for similarity search, classification and reconciliation"""

    def __init__(
        self,
        embeddings: Optional[EmbeddingService] = None,
        index: Optional[PineconeService] = None,
        store: Optional[CallStore] = None
    ):
        """Initialize the similarity service"""
        self.settings = get_settings()
        self.embeddings = embeddings or get_embedding_service()
        self.index = index or get_pinecone_service()
        self.store = store or get_call_store()
        self.duplicate_threshold = self.settings.duplicate_threshold
        self.related_threshold = self.settings.related_threshold
        self.top_k = self.settings.similarity_top_k

    async def _load_neighbour(self, file_name: str) -> Optional[CallRecord]:
        try:
            return await self.store.read(file_name)
        except (NotFoundError, ValidationError) as e:
            logger.warning(f"Could not load call record {file_name}: {e}")
            return None

    async def _embed_record(self, record: CallRecord) -> List[float]:
        text = build_embedding_text(record)
        logger.info(f"Generating embedding for call {record.reference}...")
        logger.debug(f"Embedding text (first 300 chars): {text[:300]}")
        return await self.embeddings.embed(text)

    async def build_report(
        self,
        matches: List[SimilarityMatch],
        classification: Classification,
        current: Optional[str] = None
    ) -> List[SimilarCallInfo]:
        """
        Describe every duplicate and related call, highest score first.

        Live matches above the related threshold come first; any classified
        fileName the query did not return is loaded from the store and given
        a synthetic score.
        """
        report: Dict[str, SimilarCallInfo] = {}

        for match in matches:
            reference = match.reference
            if match.score < self.related_threshold or reference == current or reference in report:
                continue

            title = match.title
            description = match.summary
            if not description or not title:
                record = await self._load_neighbour(reference)
                if record:
                    title = title or record.title
                    description = description or record.description or record.summary

            report[reference] = SimilarCallInfo(
                file_name=reference,
                call_id=match.call_id,
                title=title,
                description=description,
                similarity=to_percent(match.score),
                score=match.score,
            )

        live_scores = {match.reference: match.score for match in matches}
        missing = [
            (name, SYNTHETIC_DUPLICATE_SCORE) for name in classification.duplicate_of
        ] + [
            (name, SYNTHETIC_RELATED_SCORE) for name in classification.related_calls
        ]
        for name, synthetic_score in missing:
            if name in report:
                continue
            record = await self._load_neighbour(name)
            if record is None:
                continue
            score = live_scores.get(name, synthetic_score)
            report[name] = SimilarCallInfo(
                file_name=name,
                call_id=record.call_id,
                title=record.title,
                description=record.description or record.summary,
                similarity=to_percent(score),
                score=score,
            )
            logger.info(f"Added missing similar call to report: {name}")

        return sorted(report.values(), key=lambda info: info.score, reverse=True)

    async def reconcile(self, current: str, classification: Classification) -> None:
        """Record `current` in the adjacency lists of every classified neighbour"""
        if not current:
            return

        pairs = [(name, "duplicate_of") for name in classification.duplicate_of]
        pairs += [(name, "related_calls") for name in classification.related_calls]
        for name, field in pairs:
            try:
                await self.store.add_relation(name, field, current)
            except (NotFoundError, ValidationError) as e:
                logger.warning(f"Skipping reconciliation of {name}.{field}: {e}")

    async def process_call(
        self,
        record: CallRecord,
        progress: Optional[ProgressCallback] = None
    ) -> ProcessCallResult:
        """
        Classify a call against the index and upload it unless it is a duplicate.

        Relations already present on `record` (added while processing other
        calls) are kept and merged into the reported lists. Only duplicates
        found by the live query block the upload: a stored `duplicate_of` on an
        original names calls that were never indexed.

        Raises:
            ValidationError: record has no summary
            ConfigurationError: embedding provider or index not configured
        """
        current = record.reference
        started = time.monotonic()

        if record.call_id and await self.index.exists(record.call_id):
            logger.warning(f"Call {record.call_id} already exists in Pinecone")
            return ProcessCallResult(
                uploaded=False,
                already_exists=True,
                pinecone_id=record.pinecone_id,
            )

        report_progress(progress, "Generating embedding")
        vector = await self._embed_record(record)
        if current:
            await self.store.write_embedding(current, vector)

        report_progress(progress, "Searching similar calls")
        matches = await self.index.query(vector, top_k=self.top_k, exclude_call_id=record.call_id)
        if matches:
            top_scores = ", ".join(f"{to_percent(m.score):.4f}%" for m in matches[:3])
            logger.info(f"Top similarity scores: {top_scores}")

        fresh = classify(matches, self.duplicate_threshold, self.related_threshold, current)
        duplicate_of = _unique(record.duplicate_of + fresh.duplicate_of, exclude=[current])
        related_calls = _unique(record.related_calls + fresh.related_calls, exclude=[current, *duplicate_of])
        classification = Classification(duplicate_of=duplicate_of, related_calls=related_calls)

        similar_calls = await self.build_report(matches, classification, current)
        await self.reconcile(current, classification)

        result = ProcessCallResult(
            is_duplicate=bool(fresh.duplicate_of),
            duplicate_of=duplicate_of,
            related_calls=related_calls,
            similar_calls=similar_calls,
        )

        if fresh.duplicate_of:
            logger.warning(f"Call {current} is a duplicate of {fresh.duplicate_of}; not uploading")
        else:
            report_progress(progress, "Uploading to Pinecone")
            vector_id = record.pinecone_id or record.call_id or f"call-{int(time.time() * 1000)}"
            result.pinecone_id = await self.index.upsert(
                vector_id, vector, index_metadata(record.to_json_dict(), record.call_id)
            )
            result.uploaded = True

        logger.info(
            f"Call {current} processed: {len(duplicate_of)} duplicate(s), "
            f"{len(related_calls)} related, uploaded={result.uploaded}"
        )
        report_progress(progress, "Similarity check complete", 100.0, time.monotonic() - started)
        return result

    async def upload_embedding_only(self, record: CallRecord) -> UploadResult:
        """Embed and upsert a call without looking for similar calls"""
        vector = await self._embed_record(record)
        if record.reference:
            await self.store.write_embedding(record.reference, vector)

        vector_id = record.pinecone_id or record.call_id or f"call-{int(time.time() * 1000)}"
        pinecone_id = await self.index.upsert(
            vector_id, vector, index_metadata(record.to_json_dict(), record.call_id)
        )
        return UploadResult(uploaded=True, pinecone_id=pinecone_id)

    async def revalidate_call(self, record: CallRecord) -> ProcessCallResult:
        """
        Reclassify an already-indexed call.

        Reuses the dumped vector when available. The returned relations are a
        fresh classification meant to replace the ones stored on the record;
        nothing is uploaded.
        """
        current = record.reference
        text = build_embedding_text(record)

        vector = await self.store.read_embedding(current) if current else None
        if vector is not None:
            logger.info(f"Embedding loaded from dump for {current}")
        else:
            logger.info(f"Generating embedding for revalidation of {current}...")
            vector = await self.embeddings.embed(text)

        matches = await self.index.query(vector, top_k=self.top_k, exclude_call_id=record.call_id)
        classification = classify(matches, self.duplicate_threshold, self.related_threshold, current)
        similar_calls = await self.build_report(matches, classification, current)
        await self.reconcile(current, classification)

        logger.info(
            f"Revalidation of {current}: {len(classification.duplicate_of)} duplicate(s), "
            f"{len(classification.related_calls)} related"
        )
        return ProcessCallResult(
            uploaded=False,
            is_duplicate=bool(classification.duplicate_of),
            pinecone_id=record.pinecone_id,
            duplicate_of=classification.duplicate_of,
            related_calls=classification.related_calls,
            similar_calls=similar_calls,
        )

    async def search_calls(self, query: str, top_k: int = 10, min_score: float = 0.0) -> List[SearchHit]:
        """
        Free-text semantic search over indexed calls.

        Raises:
            ValidationError: empty query
        """
        if not query or not query.strip():
            raise ValidationError("A non-empty search query is required")

        query = query.strip()
        top_k = max(1, min(int(top_k), SEARCH_MAX_TOP_K))
        logger.info(f"Searching calls for: \"{query}\" (top_k={top_k}, min_score={min_score})")

        vector = await self.embeddings.embed(query)
        matches = await self.index.query(vector, top_k=top_k)

        hits = [
            SearchHit(
                file_name=match.file_name,
                call_id=match.call_id,
                title=match.title,
                summary=match.summary,
                date=match.date,
                name=match.name,
                age=match.age,
                youtube_video_id=match.youtube_video_id,
                similarity=to_percent(match.score),
                score=match.score,
            )
            for match in matches
            if match.score >= min_score
        ]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        logger.info(f"Found {len(hits)} matching calls")
        return hits

    async def delete_call(self, file_name: str) -> bool:
        """Remove the indexed vector of a call; False when none exists"""
        return await self.index.delete_by_file_name(file_name)


# Singleton instance
_similarity_service: Optional[SimilarityService] = None


def get_similarity_service() -> SimilarityService:
    """Get or create similarity service singleton"""
    global _similarity_service
    if _similarity_service is None:
        _similarity_service = SimilarityService()
    return _similarity_service
