"""
Pinecone Index Service

Handles all interactions with the Pinecone vector index holding one vector
per uploaded call:
- Upserting call embeddings with string-only metadata
- Nearest-neighbour queries (optionally excluding one callId)
- Existence checks by callId
- Deletion by vector id or by fileName

The index itself is created and owned outside this service. The Pinecone SDK
is synchronous, so every request runs in a worker thread.
"""
import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

from pinecone import Pinecone

from chacotero.errors import ConfigurationError
from chacotero.models import SimilarityMatch
from chacotero.settings import get_settings

logger = logging.getLogger(__name__)

# Metadata keys stored alongside each vector
INDEX_METADATA_FIELDS = (
    "callId", "fileName", "title", "summary", "date", "name", "age", "youtubeVideoId",
)


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from an SDK response object or a plain dict"""
    if isinstance(obj, Mapping):
        return obj.get(key, default)
    return getattr(obj, key, default)


def index_metadata(record: Mapping[str, Any], call_id: Optional[str] = None) -> Dict[str, str]:
    """
    Build the metadata stored with a vector.

    Pinecone rejects null values, so missing fields become empty strings and
    everything else is stringified.
    """
    metadata = {}
    for field in INDEX_METADATA_FIELDS:
        value = record.get(field)
        metadata[field] = "" if value is None else str(value)
    if not metadata["callId"]:
        metadata["callId"] = call_id or ""
    return metadata


def to_similarity_match(match: Any) -> SimilarityMatch:
    """Convert one query match into a SimilarityMatch"""
    metadata = _get(match, "metadata") or {}
    return SimilarityMatch(
        id=str(_get(match, "id")),
        score=float(_get(match, "score") or 0.0),
        file_name=metadata.get("fileName") or None,
        call_id=metadata.get("callId") or None,
        title=metadata.get("title") or None,
        summary=metadata.get("summary") or None,
        date=metadata.get("date") or None,
        name=metadata.get("name") or None,
        age=metadata.get("age") or None,
        youtube_video_id=metadata.get("youtubeVideoId") or None,
    )


class PineconeService:
    """Service for Pinecone vector index operations"""

    def __init__(self):
        """Initialize Pinecone service"""
        self.settings = get_settings()
        self.api_key = self.settings.pinecone_api_key
        self.index_name = self.settings.pinecone_index_name
        self.dimensions = self.settings.embedding_dimensions
        self.initialized = False
        self.pc = None
        self.index = None

        self._initialize_client()

    def _initialize_client(self):
        """Initialize Pinecone client and index handle"""
        if not self.api_key:
            logger.warning("PINECONE_API_KEY not set - Pinecone service disabled")
            return

        self.pc = Pinecone(api_key=self.api_key)
        self.index = self.pc.Index(self.index_name)
        self.initialized = True
        logger.info(f"Pinecone service initialized with index: {self.index_name}")

    def _require_index(self):
        if not self.initialized or self.index is None:
            raise ConfigurationError("Pinecone service not initialized (PINECONE_API_KEY missing)")
        return self.index

    def _filter_query_vector(self) -> List[float]:
        # Metadata-only lookups still need a query vector; cosine indexes reject all-zero ones
        return [1.0] + [0.0] * (self.dimensions - 1)

    async def upsert(self, vector_id: str, vector: List[float], metadata: Dict[str, str]) -> str:
        """
        Insert or replace one vector.

        Returns:
            The vector id that was written
        """
        index = self._require_index()
        await asyncio.to_thread(
            index.upsert,
            vectors=[{"id": vector_id, "values": vector, "metadata": metadata}]
        )
        logger.info(f"Call {metadata.get('callId') or vector_id} uploaded to Pinecone with ID: {vector_id}")
        return vector_id

    async def query(
        self,
        vector: List[float],
        top_k: int = 10,
        exclude_call_id: Optional[str] = None
    ) -> List[SimilarityMatch]:
        """
        Find the nearest neighbours of `vector`.

        Args:
            vector: Query embedding
            top_k: Maximum number of matches to return
            exclude_call_id: callId filtered out of the results

        Returns:
            Matches in the order returned by the index (descending score)
        """
        index = self._require_index()
        params: Dict[str, Any] = {
            "vector": vector,
            "top_k": top_k + (1 if exclude_call_id else 0),
            "include_metadata": True,
        }
        if exclude_call_id:
            params["filter"] = {"callId": {"$ne": exclude_call_id}}

        response = await asyncio.to_thread(index.query, **params)
        matches = [to_similarity_match(match) for match in (_get(response, "matches") or [])]
        if exclude_call_id:
            matches = [match for match in matches if match.call_id != exclude_call_id]

        logger.info(f"Pinecone query returned {len(matches[:top_k])} matches")
        return matches[:top_k]

    async def exists(self, call_id: str) -> bool:
        """
        Check whether a vector for `call_id` is already indexed.

        Looks the id up directly first, then by the callId metadata field
        (the vector id may be a separate pineconeId). Index errors propagate.
        """
        index = self._require_index()
        fetched = await asyncio.to_thread(index.fetch, ids=[call_id])
        if _get(fetched, "vectors"):
            return True

        response = await asyncio.to_thread(
            index.query,
            vector=self._filter_query_vector(),
            top_k=1,
            include_metadata=True,
            filter={"callId": {"$eq": call_id}},
        )
        return bool(_get(response, "matches"))

    async def delete(self, vector_id: str) -> bool:
        """Delete a vector by id; failures are logged and reported as False"""
        if not vector_id:
            logger.warning("No Pinecone id given for deletion")
            return False

        try:
            index = self._require_index()
            await asyncio.to_thread(index.delete, ids=[vector_id])
            logger.info(f"Deleted Pinecone record with ID: {vector_id}")
            return True
        except Exception as e:
            logger.error(f"Error deleting from Pinecone: {e}")
            return False

    async def find_id_by_file_name(self, file_name: str) -> Optional[str]:
        """Vector id of the record stored under `file_name`, if any"""
        index = self._require_index()
        response = await asyncio.to_thread(
            index.query,
            vector=self._filter_query_vector(),
            top_k=1,
            include_metadata=True,
            filter={"fileName": {"$eq": file_name}},
        )
        matches = _get(response, "matches") or []
        if not matches:
            return None
        return _get(matches[0], "id")

    async def delete_by_file_name(self, file_name: str) -> bool:
        """
        Delete the vector stored for `file_name`.

        Returns:
            False when no record matches or the deletion failed
        """
        if not file_name:
            logger.warning("No fileName given for Pinecone deletion")
            return False

        try:
            vector_id = await self.find_id_by_file_name(file_name)
        except Exception as e:
            logger.error(f"Error looking up Pinecone record for {file_name}: {e}")
            return False

        if not vector_id:
            logger.warning(f"No Pinecone record found for fileName: {file_name}")
            return False

        return await self.delete(vector_id)


# Singleton instance
_pinecone_service: Optional[PineconeService] = None


def get_pinecone_service() -> PineconeService:
    """Get or create Pinecone service singleton"""
    global _pinecone_service
    if _pinecone_service is None:
        _pinecone_service = PineconeService()
    return _pinecone_service
