"""
Prompt Template Loader

Prompt files hold a system instruction and a user-message template:

    SYSTEM MESSAGE:
    <instructions>
    ---
    USER MESSAGE:
    <template containing a placeholder>
"""
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from chacotero.errors import ConfigurationError
from chacotero.settings import get_settings

logger = logging.getLogger(__name__)

CALL_SEPARATION_PROMPT = "call-separation.txt"
TITLE_GENERATION_PROMPT = "title-generation.txt"
SCENE_GENERATION_PROMPT = "scene-generation.txt"
SUMMARY_GENERATION_PROMPT = "summary-generation.txt"

TRANSCRIPT_PLACEHOLDER = "[TRANSCRIPCIÓN COMPLETA AQUÍ]"
SUMMARY_PLACEHOLDER = "[SUMMARY]"

_DELIMITER = re.compile(r"^---\s*$", re.MULTILINE)
_SYSTEM_SECTION = re.compile(r"SYSTEM MESSAGE:\s*(.*)", re.DOTALL)
_USER_SECTION = re.compile(r"USER MESSAGE:\s*(.*)", re.DOTALL)


@dataclass(frozen=True)
class PromptTemplate:
    """A system message plus a user-message template"""
    system_message: str
    user_message_template: str

    def render(self, placeholder: str, value: str) -> str:
        """Substitute the first occurrence of `placeholder` in the user message"""
        return self.user_message_template.replace(placeholder, value or "", 1)


def parse_prompt_template(content: str, source: str = "<prompt>") -> PromptTemplate:
    """Split prompt text into its system and user sections"""
    parts = _DELIMITER.split(content, maxsplit=1)
    if len(parts) < 2:
        raise ConfigurationError(
            f"Prompt {source} is malformed: expected SYSTEM MESSAGE and USER MESSAGE separated by ---"
        )

    system_match = _SYSTEM_SECTION.search(parts[0])
    system_message = system_match.group(1).strip() if system_match else ""
    if not system_message:
        raise ConfigurationError(f"Prompt {source} has no SYSTEM MESSAGE section")

    user_match = _USER_SECTION.search(parts[1])
    user_message_template = user_match.group(1).strip() if user_match else ""
    if not user_message_template:
        raise ConfigurationError(f"Prompt {source} has no USER MESSAGE section")

    return PromptTemplate(system_message=system_message, user_message_template=user_message_template)


def load_prompt_template(name: str, prompts_path: Optional[Path] = None) -> PromptTemplate:
    """
    Load and parse a prompt file from the prompts directory.

    Raises:
        ConfigurationError: file missing, unreadable or malformed
    """
    base = Path(prompts_path) if prompts_path else Path(get_settings().prompts_path)
    path = base / name
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read prompt template {path}: {e}") from e

    template = parse_prompt_template(content, source=str(path))
    logger.debug(f"Loaded prompt template {name} ({len(template.user_message_template)} chars)")
    return template
