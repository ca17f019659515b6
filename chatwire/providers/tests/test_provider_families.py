import pytest

from chatwire.providers.types import ProviderFamily, family_for


@pytest.mark.parametrize(
    'provider,family',
    [
        ('openai', ProviderFamily.CHAT_COMPLETIONS),
        ('copilot', ProviderFamily.CHAT_COMPLETIONS),
        ('azure', ProviderFamily.CHAT_COMPLETIONS),
        ('ollama', ProviderFamily.CHAT_COMPLETIONS),
        ('anthropic', ProviderFamily.ANTHROPIC_MESSAGES),
        ('claude', ProviderFamily.ANTHROPIC_MESSAGES),
        ('googleai', ProviderFamily.GEMINI),
        ('mystery', None),
        (None, None),
    ],
)
def test_family_for(provider, family):
    assert family_for(provider) is family
