"""
Gemelo i18n - Localized strings returned to the client

Only the strings the backend itself emits live here (progress logs and
error messages). Missing keys fall back to the key itself.
"""

from typing import Dict, List

SUPPORTED_LANGUAGES = ("es", "en")
DEFAULT_LANGUAGE = "es"

I18N: Dict[str, Dict[str, str]] = {
    "es": {
        "selecting_model": "Seleccionando el modelo de IA más adecuado...",
        "analyzing_coherence": "Analizando la coherencia con tu perfil...",
        "using_tools": "Utilizando herramientas de pensamiento y búsqueda...",
        "process_completed": "Proceso completado.",
        "error_generating_response": "Error al generar la respuesta",
        "error_configuration": "El servicio de IA no está configurado correctamente",
        "no_profile_data": "Sin datos de perfil.",
    },
    "en": {
        "selecting_model": "Selecting the most appropriate AI model...",
        "analyzing_coherence": "Analyzing coherence with your profile...",
        "using_tools": "Using thinking and search tools...",
        "process_completed": "Process completed.",
        "error_generating_response": "Error generating response",
        "error_configuration": "The AI service is not configured correctly",
        "no_profile_data": "No profile data.",
    },
}

# Presentational only, not tied to the steps actually taken
PROGRESS_LOG_KEYS = ["selecting_model", "analyzing_coherence", "using_tools", "process_completed"]


def normalize_language(language: str) -> str:
    """Map any tag (es-MX, EN, None) onto a supported language."""
    if not language:
        return DEFAULT_LANGUAGE
    base = str(language).split("-")[0].lower()
    return base if base in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


def t(key: str, language: str = DEFAULT_LANGUAGE) -> str:
    return I18N[normalize_language(language)].get(key, key)


def progress_logs(language: str = DEFAULT_LANGUAGE) -> List[str]:
    return [t(key, language) for key in PROGRESS_LOG_KEYS]
