"""
Metadata Service

Per-call enrichment with the chat model:
- Title and thumbnail scene from an existing summary
- Full metadata (title, summary, description, ...) from a call transcription
- A detailed standalone summary for search

All requests use JSON mode; replies go through the same sanitizer as call
separation so stray prose around the object is tolerated.
"""
import logging
from typing import Any, Dict, Optional

from chacotero.errors import ParseError, ValidationError
from chacotero.services.json_repair import parse_llm_json
from chacotero.services.llm_service import LLMService, get_llm_service
from chacotero.services.prompt_loader import (
    SCENE_GENERATION_PROMPT,
    SUMMARY_GENERATION_PROMPT,
    SUMMARY_PLACEHOLDER,
    TITLE_GENERATION_PROMPT,
    TRANSCRIPT_PLACEHOLDER,
    load_prompt_template,
)
from chacotero.settings import get_settings

logger = logging.getLogger(__name__)

SUMMARY_ONLY_SYSTEM_MESSAGE = (
    "Eres un experto en análisis de contenido de radio. Tu tarea es generar un resumen "
    "detallado y completo de una llamada telefónica en un programa de radio. El resumen "
    "debe incluir TODOS los puntos, eventos, situaciones y detalles mencionados en la "
    "conversación, ya que se usará para búsqueda por contenido."
)

SUMMARY_ONLY_USER_TEMPLATE = (
    "Analiza esta transcripción de una llamada telefónica y genera un resumen detallado "
    "y completo que incluya todos los aspectos relevantes de la conversación:\n\n"
    f"{TRANSCRIPT_PLACEHOLDER}\n\n"
    "Responde ÚNICAMENTE con JSON válido en el siguiente formato:\n"
    '{\n  "summary": "resumen detallado y completo aquí"\n}'
)


def _require_field(result: Any, field: str, task: str) -> Any:
    if not isinstance(result, dict):
        raise ParseError(f"{task}: expected a JSON object, got {type(result).__name__}")
    value = result.get(field)
    if not value:
        raise ValidationError(f"{task}: model reply has no '{field}' field")
    return value


class MetadataService:
    """Service for AI-generated call metadata"""

    def __init__(self, llm: Optional[LLMService] = None):
        """Initialize the metadata service"""
        self.settings = get_settings()
        self.llm: LLMService = llm or get_llm_service()

    async def _request_json(self, system_message: str, user_message: str, task: str) -> Any:
        self.llm.ensure_available()
        logger.info(f"{task}: requesting model {self.settings.llm_metadata_model}")
        reply = await self.llm.complete(
            system_message,
            user_message,
            temperature=self.settings.metadata_temperature,
            model=self.settings.llm_metadata_model,
            json_mode=True,
        )
        return parse_llm_json(reply)

    async def generate_title(self, summary: str) -> str:
        """
        Generate a short title from a call summary.

        Raises:
            ConfigurationError: no API key or broken prompt template
            ParseError: reply is not JSON
            ValidationError: reply has no title
        """
        template = load_prompt_template(TITLE_GENERATION_PROMPT, self.settings.prompts_path)
        result = await self._request_json(
            template.system_message,
            template.render(SUMMARY_PLACEHOLDER, summary or ""),
            "Title generation",
        )
        return str(_require_field(result, "title", "Title generation")).strip()

    async def generate_thumbnail_scene(self, summary: str) -> str:
        """Generate a visual scene description for the call thumbnail"""
        template = load_prompt_template(SCENE_GENERATION_PROMPT, self.settings.prompts_path)
        result = await self._request_json(
            template.system_message,
            template.render(SUMMARY_PLACEHOLDER, summary or ""),
            "Scene generation",
        )
        return str(_require_field(result, "thumbnailScene", "Scene generation")).strip()

    async def generate_metadata_from_transcription(self, transcription: str) -> Dict[str, Any]:
        """
        Generate the full metadata object for one call.

        Returns:
            The model's JSON object; guaranteed to contain `summary` and `title`

        Raises:
            ValidationError: empty transcription, or summary/title missing
        """
        if not transcription or not transcription.strip():
            raise ValidationError("Transcription is empty")

        template = load_prompt_template(SUMMARY_GENERATION_PROMPT, self.settings.prompts_path)
        task = "Metadata generation"
        result = await self._request_json(
            template.system_message,
            template.render(TRANSCRIPT_PLACEHOLDER, transcription),
            task,
        )
        _require_field(result, "summary", task)
        _require_field(result, "title", task)
        logger.info(f"{task}: received fields {sorted(result.keys())}")
        return result

    async def generate_summary_from_transcription(self, transcription: str) -> str:
        """Generate a detailed summary used for search"""
        if not transcription or not transcription.strip():
            raise ValidationError("Transcription is empty")

        user_message = SUMMARY_ONLY_USER_TEMPLATE.replace(TRANSCRIPT_PLACEHOLDER, transcription, 1)
        result = await self._request_json(SUMMARY_ONLY_SYSTEM_MESSAGE, user_message, "Summary generation")
        return str(_require_field(result, "summary", "Summary generation")).strip()


# Singleton instance
_metadata_service: Optional[MetadataService] = None


def get_metadata_service() -> MetadataService:
    """Get or create metadata service singleton"""
    global _metadata_service
    if _metadata_service is None:
        _metadata_service = MetadataService()
    return _metadata_service
