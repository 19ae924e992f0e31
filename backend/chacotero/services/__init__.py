"""
Chacotero Calls - Services
"""
from .call_separation_service import CallSeparationService
from .metadata_service import MetadataService
from .embedding_service import EmbeddingService
from .pinecone_service import PineconeService
from .call_store import CallStore
from .similarity_service import SimilarityService

__all__ = [
    "CallSeparationService",
    "MetadataService",
    "EmbeddingService",
    "PineconeService",
    "CallStore",
    "SimilarityService"
]
