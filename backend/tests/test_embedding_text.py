"""
Tests for the embedding text builder
"""
import pytest

from chacotero.errors import ValidationError
from chacotero.models import CallRecord
from chacotero.services.embedding_text import build_embedding_text


class TestBuildEmbeddingText:
    """Test cases for build_embedding_text"""

    def test_omits_absent_fields(self):
        assert build_embedding_text({"name": "Ana", "summary": "resumen"}) == "Nombre: Ana\nResumen: resumen"

    def test_all_fields_in_fixed_order(self):
        text = build_embedding_text({
            "summary": "S",
            "description": "D",
            "age": 42,
            "name": "N",
        })

        assert text == "Nombre: N\nEdad: 42\nDescripcion: D\nResumen: S"

    def test_blank_fields_are_omitted(self):
        text = build_embedding_text({"name": "   ", "age": None, "description": "", "summary": " resumen "})

        assert text == "Resumen: resumen"

    def test_missing_summary_raises(self):
        with pytest.raises(ValidationError):
            build_embedding_text({"name": "Ana"})

    def test_blank_summary_raises(self):
        with pytest.raises(ValidationError):
            build_embedding_text({"name": "Ana", "summary": "  "})

    def test_accepts_call_records(self):
        record = CallRecord.model_validate({"fileName": "c1", "name": "Ana", "age": "30", "summary": "resumen"})

        assert build_embedding_text(record) == "Nombre: Ana\nEdad: 30\nResumen: resumen"

    def test_is_deterministic(self):
        metadata = {"name": "Ana", "description": "d", "summary": "s"}

        assert build_embedding_text(metadata) == build_embedding_text(dict(metadata))
