"""
Tests for Pinecone Service

Tests the vector index integration including:
- Upserting call vectors
- Nearest-neighbour queries with callId exclusion
- Existence checks
- Deletion by id and by fileName
"""
import pytest
from unittest.mock import Mock, patch

from chacotero.errors import ConfigurationError
from chacotero.services.pinecone_service import index_metadata, to_similarity_match


def _match(vector_id, score, **metadata):
    return {"id": vector_id, "score": score, "metadata": metadata}


class TestPineconeService:
    """Test cases for PineconeService"""

    @pytest.fixture
    def mock_index(self):
        """Create a mock Pinecone client and index"""
        with patch("chacotero.services.pinecone_service.Pinecone") as mock:
            mock_instance = Mock()
            index = Mock()

            mock_instance.Index.return_value = index
            mock.return_value = mock_instance

            yield index

    @pytest.fixture
    def pinecone_service(self, mock_index):
        """Create a PineconeService instance with mocked client"""
        from chacotero.services.pinecone_service import PineconeService
        service = PineconeService()
        assert service.index is mock_index
        return service

    @pytest.mark.asyncio
    async def test_upsert(self, pinecone_service, mock_index):
        """Test vector upsert with metadata"""
        metadata = index_metadata({"callId": "c1", "fileName": "llamada"})

        result = await pinecone_service.upsert("c1", [0.1, 0.2], metadata)

        assert result == "c1"
        mock_index.upsert.assert_called_once_with(
            vectors=[{"id": "c1", "values": [0.1, 0.2], "metadata": metadata}]
        )

    @pytest.mark.asyncio
    async def test_query_returns_matches(self, pinecone_service, mock_index):
        """Test query conversion to SimilarityMatch"""
        mock_index.query.return_value = {"matches": [
            _match("v1", 0.99, callId="c1", fileName="uno", title="Uno", age=""),
            _match("v2", 0.5, callId="c2", fileName="dos"),
        ]}

        matches = await pinecone_service.query([0.1] * 8, top_k=5)

        assert [m.reference for m in matches] == ["uno", "dos"]
        assert matches[0].score == pytest.approx(0.99)
        assert matches[0].age is None
        kwargs = mock_index.query.call_args.kwargs
        assert kwargs["top_k"] == 5
        assert kwargs["include_metadata"] is True
        assert "filter" not in kwargs

    @pytest.mark.asyncio
    async def test_query_excludes_call_id(self, pinecone_service, mock_index):
        """Test that the current call never appears among its neighbours"""
        mock_index.query.return_value = {"matches": [
            _match("self", 1.0, callId="c1", fileName="yo"),
            _match("v2", 0.95, callId="c2", fileName="dos"),
            _match("v3", 0.93, callId="c3", fileName="tres"),
        ]}

        matches = await pinecone_service.query([0.1] * 8, top_k=2, exclude_call_id="c1")

        assert [m.call_id for m in matches] == ["c2", "c3"]
        kwargs = mock_index.query.call_args.kwargs
        assert kwargs["top_k"] == 3
        assert kwargs["filter"] == {"callId": {"$ne": "c1"}}

    @pytest.mark.asyncio
    async def test_exists_by_vector_id(self, pinecone_service, mock_index):
        """Test existence found by direct fetch"""
        mock_index.fetch.return_value = {"vectors": {"c1": {}}}

        assert await pinecone_service.exists("c1") is True
        mock_index.query.assert_not_called()

    @pytest.mark.asyncio
    async def test_exists_by_metadata(self, pinecone_service, mock_index):
        """Test existence found through the callId metadata filter"""
        mock_index.fetch.return_value = {"vectors": {}}
        mock_index.query.return_value = {"matches": [_match("other-id", 0.1, callId="c1")]}

        assert await pinecone_service.exists("c1") is True

        kwargs = mock_index.query.call_args.kwargs
        assert kwargs["filter"] == {"callId": {"$eq": "c1"}}
        assert len(kwargs["vector"]) == 8
        assert any(kwargs["vector"])

    @pytest.mark.asyncio
    async def test_exists_false(self, pinecone_service, mock_index):
        mock_index.fetch.return_value = {"vectors": {}}
        mock_index.query.return_value = {"matches": []}

        assert await pinecone_service.exists("c9") is False

    @pytest.mark.asyncio
    async def test_exists_propagates_errors(self, pinecone_service, mock_index):
        """Test that index failures are not mistaken for 'not indexed'"""
        mock_index.fetch.side_effect = RuntimeError("index unavailable")

        with pytest.raises(RuntimeError):
            await pinecone_service.exists("c1")

    @pytest.mark.asyncio
    async def test_delete_success(self, pinecone_service, mock_index):
        assert await pinecone_service.delete("v1") is True
        mock_index.delete.assert_called_once_with(ids=["v1"])

    @pytest.mark.asyncio
    async def test_delete_failure(self, pinecone_service, mock_index):
        """Test deletion errors reported as False"""
        mock_index.delete.side_effect = Exception("Delete failed")

        assert await pinecone_service.delete("v1") is False

    @pytest.mark.asyncio
    async def test_delete_by_file_name(self, pinecone_service, mock_index):
        mock_index.query.return_value = {"matches": [_match("v7", 0.0, fileName="llamada")]}

        assert await pinecone_service.delete_by_file_name("llamada") is True

        assert mock_index.query.call_args.kwargs["filter"] == {"fileName": {"$eq": "llamada"}}
        mock_index.delete.assert_called_once_with(ids=["v7"])

    @pytest.mark.asyncio
    async def test_delete_by_file_name_not_found(self, pinecone_service, mock_index):
        mock_index.query.return_value = {"matches": []}

        assert await pinecone_service.delete_by_file_name("nada") is False
        mock_index.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_initialized(self, pinecone_service):
        """Test operations when the service is not initialized"""
        pinecone_service.initialized = False

        with pytest.raises(ConfigurationError):
            await pinecone_service.query([0.1] * 8)
        with pytest.raises(ConfigurationError):
            await pinecone_service.upsert("c1", [0.1] * 8, {})
        assert await pinecone_service.delete("c1") is False


class TestIndexMetadata:
    """Test cases for vector metadata"""

    def test_nulls_become_empty_strings(self):
        metadata = index_metadata({"fileName": "f", "title": None, "age": 42})

        assert metadata["title"] == ""
        assert metadata["age"] == "42"
        assert metadata["fileName"] == "f"
        assert set(metadata) == {
            "callId", "fileName", "title", "summary", "date", "name", "age", "youtubeVideoId",
        }
        assert all(isinstance(value, str) for value in metadata.values())

    def test_call_id_fallback(self):
        assert index_metadata({}, call_id="c1")["callId"] == "c1"
        assert index_metadata({"callId": "own"}, call_id="c1")["callId"] == "own"

    def test_match_conversion_from_sdk_object(self):
        match = Mock(id="v1", score=0.91, metadata={"fileName": "uno", "summary": ""})

        converted = to_similarity_match(match)

        assert converted.file_name == "uno"
        assert converted.summary is None
        assert converted.reference == "uno"
