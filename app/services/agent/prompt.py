"""Prompt templates for the conversation agent."""
from typing import Dict, List

from app.core.languages import LanguageProfile
from app.services.call_session.models import Turn

MAX_RESPONSE_WORDS = 100


def get_system_prompt(language: LanguageProfile) -> str:
    """Get the system prompt for a call in the given language."""
    return f"""You are an AI voice assistant speaking in {language.display_name}.
Keep responses conversational, natural, and under {MAX_RESPONSE_WORDS} words.
You're having a phone conversation, so speak as if talking directly to the person.
Be helpful, friendly, and engaging.
Always reply in {language.display_name}."""


def build_messages(history: List[Turn], language: LanguageProfile) -> List[Dict[str, str]]:
    """Build chat messages: system instruction followed by the history window."""
    messages = [{"role": "system", "content": get_system_prompt(language)}]
    for turn in history:
        messages.append({"role": turn.role.value, "content": turn.text})
    return messages
