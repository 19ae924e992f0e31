"""
Similarity Models

Result shapes produced by the Similarity Engine. None of these are persisted
directly; their classification is folded into CallRecord adjacency lists.
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class SimilarityMatch(BaseModel):
    """One nearest-neighbour hit returned by the vector index"""
    id: str = Field(..., description="Vector id in the index")
    score: float = Field(..., description="Cosine similarity in [0, 1]")
    file_name: Optional[str] = None
    call_id: Optional[str] = None
    title: Optional[str] = None
    summary: Optional[str] = None
    date: Optional[str] = None
    name: Optional[str] = None
    age: Optional[str] = None
    youtube_video_id: Optional[str] = None

    @property
    def reference(self) -> str:
        """Name used to cross-reference this match in call records"""
        return self.file_name or self.id


class SimilarCallInfo(BaseModel):
    """Entry of the duplicate/related report shown to users"""
    file_name: str
    call_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    similarity: float = Field(..., description="Score as a percentage, 4 decimals")
    score: float


class Classification(BaseModel):
    """Neighbours split by the duplicate and related thresholds"""
    duplicate_of: List[str] = Field(default_factory=list)
    related_calls: List[str] = Field(default_factory=list)


class ProcessCallResult(BaseModel):
    """Outcome of running a call through the Similarity Engine"""
    uploaded: bool = False
    already_exists: bool = False
    is_duplicate: bool = False
    pinecone_id: Optional[str] = None
    duplicate_of: List[str] = Field(default_factory=list)
    related_calls: List[str] = Field(default_factory=list)
    similar_calls: List[SimilarCallInfo] = Field(default_factory=list)


class UploadResult(BaseModel):
    """Outcome of uploading an embedding without similarity search"""
    uploaded: bool
    pinecone_id: Optional[str] = None


class SearchHit(BaseModel):
    """Result row of a free-text semantic search"""
    file_name: Optional[str] = None
    call_id: Optional[str] = None
    title: Optional[str] = None
    summary: Optional[str] = None
    date: Optional[str] = None
    name: Optional[str] = None
    age: Optional[str] = None
    youtube_video_id: Optional[str] = None
    similarity: float
    score: float
