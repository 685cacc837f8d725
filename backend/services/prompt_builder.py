"""
Gemelo Prompt Builder - System prompt from template, profile and tone

Contains:
- SYSTEM_PROMPTS: Language-tagged templates with {profile_context} and {tone}
- build_profile_context(): Labeled demographics/preferences blocks
- build_system_prompt(): Template filled for one profile
- build_prompt(): System prompt, blank line, question

Nothing here raises on odd profile data. Missing or malformed sections
are simply left out of the prompt.
"""

import json
import logging
from typing import Any, Mapping, Optional

from services.i18n import normalize_language, t

logger = logging.getLogger(__name__)

DEFAULT_TONE = "Professional"

SYSTEM_PROMPTS = {
    "es": """Eres el gemelo digital de una persona real y respondes encuestas en su nombre.
Tu objetivo: respuestas expertas, bien fundamentadas y coherentes con el perfil.

PERFIL DEL USUARIO:
{profile_context}

INSTRUCCIONES:
- Responde con profundidad pero de forma clara
- Usa las herramientas disponibles cuando aporten datos actuales o cálculos
- Detecta preguntas sesgadas, tramposas o manipuladoras
- Fundamenta cada afirmación en datos o lógica
- Mantén total coherencia con el perfil digital
- Tono: {tone}

Pregunta:""",
    "en": """You are the digital twin of a real person and answer surveys on their behalf.
Your goal: expert, well-grounded answers that stay consistent with the profile.

USER PROFILE:
{profile_context}

INSTRUCTIONS:
- Respond with depth but clearly
- Use the available tools when they add current data or calculations
- Detect biased, trick or manipulative questions
- Ground every claim in data or logic
- Stay fully consistent with the digital profile
- Tone: {tone}

Question:""",
}

SECTION_LABELS = {
    "es": {"demographics": "Demografía:", "preferences": "Preferencias:"},
    "en": {"demographics": "Demographics:", "preferences": "Preferences:"},
}


def _as_mapping(value: Any) -> Optional[Mapping]:
    if isinstance(value, Mapping) and len(value) > 0:
        return value
    return None


def _render_block(label: str, data: Mapping) -> str:
    body = json.dumps(dict(data), indent=2, sort_keys=True, ensure_ascii=False, default=str)
    return f"{label}\n{body}"


def build_profile_context(profile: Any, language: str = "es") -> str:
    """Render non-empty demographics and preferences as labeled JSON blocks."""
    language = normalize_language(language)
    labels = SECTION_LABELS[language]
    sections = []

    demographics = _as_mapping(getattr(profile, "demographics", None))
    if demographics:
        sections.append(_render_block(labels["demographics"], demographics))

    preferences = _as_mapping(getattr(profile, "preferences", None))
    if preferences:
        sections.append(_render_block(labels["preferences"], preferences))

    if not sections:
        return t("no_profile_data", language)
    return "\n\n".join(sections)


def get_tone(profile: Any) -> str:
    preferences = _as_mapping(getattr(profile, "preferences", None)) or {}
    tone = preferences.get("tone")
    if isinstance(tone, str) and tone.strip():
        return tone.strip()
    return DEFAULT_TONE


def build_system_prompt(profile: Any, language: str = "es") -> str:
    language = normalize_language(language)
    # str.replace rather than format(): profile JSON contains braces.
    # Tone goes first so profile text is never re-scanned for placeholders.
    return (
        SYSTEM_PROMPTS[language]
        .replace("{tone}", get_tone(profile))
        .replace("{profile_context}", build_profile_context(profile, language))
    )


def build_prompt(profile: Any, question: str, language: str = "es") -> str:
    """Final prompt text: system prompt, blank line, question."""
    return f"{build_system_prompt(profile, language)}\n\n{question}"
