"""
Embedding Service

Text -> fixed-length vector, with two interchangeable providers:
- openai: OpenAI embeddings API (text-embedding-3 models are asked for the
  configured dimensionality directly)
- local: a sentence-transformers model loaded once per process

Vectors from the local model are padded or truncated to the configured
dimensionality so they always fit the index.
"""
import asyncio
import logging
from typing import Any, List, Optional

from openai import AsyncOpenAI

from chacotero.errors import ConfigurationError, EmbeddingError
from chacotero.settings import get_settings

logger = logging.getLogger(__name__)


def fit_dimensions(vector: List[float], dimensions: int) -> List[float]:
    """Truncate or zero-pad `vector` to exactly `dimensions` entries"""
    if len(vector) > dimensions:
        return vector[:dimensions]
    if len(vector) < dimensions:
        return vector + [0.0] * (dimensions - len(vector))
    return vector


class EmbeddingService:
    """Service for computing text embeddings"""

    def __init__(self):
        """Initialize the configured embedding provider"""
        self.settings = get_settings()
        self.provider = self.settings.embedding_provider
        self.dimensions = self.settings.embedding_dimensions
        self.client: Optional[AsyncOpenAI] = None
        self._local_model: Any = None

        if self.provider == "openai":
            if self.settings.openai_api_key:
                self.client = AsyncOpenAI(api_key=self.settings.openai_api_key, max_retries=0)
                logger.info(
                    f"Embedding service using OpenAI model {self.settings.openai_embedding_model} "
                    f"({self.dimensions} dimensions)"
                )
            else:
                logger.warning("OpenAI API key not configured - embeddings will not work")
        else:
            logger.info(
                f"Embedding service using local model {self.settings.embedding_local_model} "
                f"({self.dimensions} dimensions)"
            )

    def _load_local_model(self) -> Any:
        if self._local_model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise ConfigurationError(
                    "EMBEDDING_PROVIDER=local requires the sentence-transformers package "
                    "(install the 'local' extra)"
                ) from e

            logger.info(f"Loading local embedding model: {self.settings.embedding_local_model}...")
            self._local_model = SentenceTransformer(self.settings.embedding_local_model)
            logger.info("Local embedding model loaded")
        return self._local_model

    def _encode_local(self, text: str) -> List[float]:
        model = self._load_local_model()
        output = model.encode([text], normalize_embeddings=True)
        return [float(value) for value in output[0]]

    async def _embed_local(self, text: str) -> List[float]:
        vector = await asyncio.to_thread(self._encode_local, text)
        if len(vector) != self.dimensions:
            logger.warning(
                f"Local embedding has {len(vector)} dimensions, expected {self.dimensions}. Adjusting..."
            )
            vector = fit_dimensions(vector, self.dimensions)
        return vector

    async def _embed_openai(self, text: str) -> List[float]:
        if not self.client:
            raise ConfigurationError("OPENAI_API_KEY is not configured")

        model = self.settings.openai_embedding_model
        params = {"model": model, "input": text}
        if "text-embedding-3" in model:
            params["dimensions"] = self.dimensions

        response = await self.client.embeddings.create(**params)
        if not response.data or not response.data[0].embedding:
            raise EmbeddingError(f"Embedding API returned no vector for model {model}")

        vector = list(response.data[0].embedding)
        logger.info(f"OpenAI embedding generated with {len(vector)} dimensions")
        return vector

    async def embed(self, text: str) -> List[float]:
        """
        Compute the embedding vector for `text`.

        Provider errors propagate; a call cannot be processed without its vector.
        """
        if self.provider == "local":
            return await self._embed_local(text)
        return await self._embed_openai(text)


# Singleton instance
_embedding_service: Optional[EmbeddingService] = None


def get_embedding_service() -> EmbeddingService:
    """Get or create embedding service singleton"""
    global _embedding_service
    if _embedding_service is None:
        _embedding_service = EmbeddingService()
    return _embedding_service
