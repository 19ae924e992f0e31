"""
Chacotero Calls - Data Models
"""
from .transcript import TranscriptSegment, total_duration
from .call import CallMetadata, CallCandidate, ValidatedCall, CallRecord
from .similarity import (
    SimilarityMatch,
    SimilarCallInfo,
    Classification,
    ProcessCallResult,
    UploadResult,
    SearchHit,
)

__all__ = [
    "TranscriptSegment", "total_duration",
    "CallMetadata", "CallCandidate", "ValidatedCall", "CallRecord",
    "SimilarityMatch", "SimilarCallInfo", "Classification",
    "ProcessCallResult", "UploadResult", "SearchHit",
]
