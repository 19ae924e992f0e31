"""
Shared test fixtures
"""
import os
from typing import List
from unittest.mock import AsyncMock, Mock

import pytest

# Set test environment before any chacotero import reads settings
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("PINECONE_API_KEY", "test-api-key")
os.environ.setdefault("EMBEDDING_PROVIDER", "openai")
os.environ.setdefault("OPENAI_EMBEDDING_DIMENSIONS", "8")

from chacotero.models import CallRecord, TranscriptSegment  # noqa: E402
from chacotero.services.call_store import CallStore  # noqa: E402


@pytest.fixture
def two_segments() -> List[TranscriptSegment]:
    """Two adjacent one-minute segments"""
    return [
        TranscriptSegment(start=0, end=60, text="hola"),
        TranscriptSegment(start=60, end=120, text="chau"),
    ]


@pytest.fixture
def gapped_segments() -> List[TranscriptSegment]:
    """Segments with silences between them"""
    return [
        TranscriptSegment(start=0, end=10, text="uno"),
        TranscriptSegment(start=12, end=20, text="dos"),
        TranscriptSegment(start=25, end=40, text="tres"),
        TranscriptSegment(start=40, end=55, text="cuatro"),
    ]


@pytest.fixture
def call_store(tmp_path) -> CallStore:
    """Call store rooted in a temporary directory"""
    return CallStore(calls_path=tmp_path / "calls")


@pytest.fixture
def mock_llm():
    """LLM service whose replies are set per test"""
    llm = Mock()
    llm.ensure_available = Mock()
    llm.is_available = Mock(return_value=True)
    llm.complete = AsyncMock()
    return llm


@pytest.fixture
def make_record():
    """Factory for call records"""
    def _make(file_name: str, **fields) -> CallRecord:
        data = {
            "callId": f"id-{file_name}",
            "fileName": file_name,
            "summary": f"Resumen de {file_name}",
        }
        data.update(fields)
        return CallRecord.model_validate(data)
    return _make
