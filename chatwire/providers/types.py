"""Provider families and the provider-name to family mapping."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional


class ProviderFamily(str, Enum):
    """Structurally distinct wire protocols."""

    CHAT_COMPLETIONS = 'chat_completions'
    ANTHROPIC_MESSAGES = 'anthropic_messages'
    GEMINI = 'gemini'


PROVIDER_FAMILIES: Dict[str, ProviderFamily] = {
    'openai': ProviderFamily.CHAT_COMPLETIONS,
    'copilot': ProviderFamily.CHAT_COMPLETIONS,
    'azure': ProviderFamily.CHAT_COMPLETIONS,
    'ollama': ProviderFamily.CHAT_COMPLETIONS,
    'anthropic': ProviderFamily.ANTHROPIC_MESSAGES,
    'claude': ProviderFamily.ANTHROPIC_MESSAGES,
    'googleai': ProviderFamily.GEMINI,
}


def family_for(provider: Optional[str]) -> Optional[ProviderFamily]:
    """Return the wire family for a provider name, or None when unknown."""
    if provider is None:
        return None
    return PROVIDER_FAMILIES.get(provider)


__all__ = ['PROVIDER_FAMILIES', 'ProviderFamily', 'family_for']
