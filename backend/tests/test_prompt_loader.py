"""
Tests for prompt template loading
"""
import pytest

from chacotero.errors import ConfigurationError
from chacotero.services.prompt_loader import (
    CALL_SEPARATION_PROMPT,
    SCENE_GENERATION_PROMPT,
    SUMMARY_GENERATION_PROMPT,
    SUMMARY_PLACEHOLDER,
    TITLE_GENERATION_PROMPT,
    TRANSCRIPT_PLACEHOLDER,
    load_prompt_template,
    parse_prompt_template,
)


class TestParsePromptTemplate:
    """Test cases for splitting prompt text"""

    def test_splits_system_and_user_sections(self):
        template = parse_prompt_template(
            "SYSTEM MESSAGE:\nEres un asistente.\n---\nUSER MESSAGE:\nAnaliza [SUMMARY]\n"
        )

        assert template.system_message == "Eres un asistente."
        assert template.user_message_template == "Analiza [SUMMARY]"

    def test_render_replaces_placeholder(self):
        template = parse_prompt_template("SYSTEM MESSAGE:\nx\n---\nUSER MESSAGE:\nTexto: [SUMMARY]")

        assert template.render(SUMMARY_PLACEHOLDER, "una llamada") == "Texto: una llamada"

    def test_missing_delimiter_raises(self):
        with pytest.raises(ConfigurationError):
            parse_prompt_template("SYSTEM MESSAGE:\nx\nUSER MESSAGE:\ny")

    def test_empty_system_section_raises(self):
        with pytest.raises(ConfigurationError):
            parse_prompt_template("SYSTEM MESSAGE:\n\n---\nUSER MESSAGE:\ny")

    def test_empty_user_section_raises(self):
        with pytest.raises(ConfigurationError):
            parse_prompt_template("SYSTEM MESSAGE:\nx\n---\nUSER MESSAGE:\n   ")

    def test_dashes_inside_text_do_not_split(self):
        template = parse_prompt_template(
            "SYSTEM MESSAGE:\nusa --- como separador\n---\nUSER MESSAGE:\nhola"
        )

        assert template.system_message == "usa --- como separador"
        assert template.user_message_template == "hola"


class TestLoadPromptTemplate:
    """Test cases for loading prompt files"""

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_prompt_template("missing.txt", tmp_path)

    def test_loads_from_directory(self, tmp_path):
        (tmp_path / "custom.txt").write_text(
            "SYSTEM MESSAGE:\nsistema\n---\nUSER MESSAGE:\nusuario", encoding="utf-8"
        )

        template = load_prompt_template("custom.txt", tmp_path)

        assert template.system_message == "sistema"

    @pytest.mark.parametrize("name,placeholder", [
        (CALL_SEPARATION_PROMPT, TRANSCRIPT_PLACEHOLDER),
        (SUMMARY_GENERATION_PROMPT, TRANSCRIPT_PLACEHOLDER),
        (TITLE_GENERATION_PROMPT, SUMMARY_PLACEHOLDER),
        (SCENE_GENERATION_PROMPT, SUMMARY_PLACEHOLDER),
    ])
    def test_bundled_prompts_are_well_formed(self, name, placeholder):
        template = load_prompt_template(name)

        assert template.system_message
        assert placeholder in template.user_message_template
