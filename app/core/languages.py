"""Supported conversation languages."""
from typing import Dict, Optional
from pydantic import BaseModel


class LanguageProfile(BaseModel):
    """Per-language display name, synthesis voice and transcription code."""

    code: str
    display_name: str
    synthesis_voice_id: str
    transcription_language_code: str
    twiml_language: str  # Locale used by <Say>/<Gather>


SUPPORTED_LANGUAGES: Dict[str, LanguageProfile] = {
    "en": LanguageProfile(
        code="en",
        display_name="English",
        synthesis_voice_id="alloy",
        transcription_language_code="en",
        twiml_language="en-US",
    ),
    "es": LanguageProfile(
        code="es",
        display_name="Spanish",
        synthesis_voice_id="nova",
        transcription_language_code="es",
        twiml_language="es-ES",
    ),
    "fr": LanguageProfile(
        code="fr",
        display_name="French",
        synthesis_voice_id="shimmer",
        transcription_language_code="fr",
        twiml_language="fr-FR",
    ),
    "de": LanguageProfile(
        code="de",
        display_name="German",
        synthesis_voice_id="echo",
        transcription_language_code="de",
        twiml_language="de-DE",
    ),
    "it": LanguageProfile(
        code="it",
        display_name="Italian",
        synthesis_voice_id="fable",
        transcription_language_code="it",
        twiml_language="it-IT",
    ),
    "pt": LanguageProfile(
        code="pt",
        display_name="Portuguese",
        synthesis_voice_id="onyx",
        transcription_language_code="pt",
        twiml_language="pt-BR",
    ),
}


def resolve_language(code: Optional[str], fallback: str = "en") -> LanguageProfile:
    """Return the profile for a language code, or the fallback profile.

    Codes are matched case-insensitively on their primary subtag, so "en-US"
    and "EN" both resolve to English.
    """
    if code:
        primary = code.strip().lower().split("-")[0].split("_")[0]
        profile = SUPPORTED_LANGUAGES.get(primary)
        if profile is not None:
            return profile
    return SUPPORTED_LANGUAGES.get(fallback, SUPPORTED_LANGUAGES["en"])
