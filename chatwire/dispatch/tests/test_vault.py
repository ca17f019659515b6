from unittest.mock import MagicMock

import pytest

from chatwire.dispatch.vault import InMemoryVault, obfuscate_secret


class TestInMemoryVault:
    def test_add_and_get(self):
        vault = InMemoryVault()
        vault.add_secret('anthropic', 'sk-ant')
        assert vault.get_secret('anthropic') == 'sk-ant'

    def test_alias(self):
        vault = InMemoryVault({'openai': 'sk-test-123'})
        assert vault.get_secret('openai') == 'sk-test-123'
        assert vault.get_secret('openai_api_key') == 'sk-test-123'

    def test_first_value_wins(self):
        vault = InMemoryVault()
        vault.add_secret('key', 'first-value')
        vault.add_secret('key', 'second-value')
        assert vault.get_secret('key') == 'first-value'

    @pytest.mark.parametrize('source', [None, '', '   '])
    def test_empty_secret(self, source):
        vault = InMemoryVault({'key': source})
        assert vault.get_secret('key') is None

    def test_whitespace_trimmed(self):
        assert InMemoryVault({'key': '  trimmed-value\n'}).get_secret('key') == 'trimmed-value'

    def test_resolver_is_lazy(self):
        resolver = MagicMock(return_value='resolved-secret-value\n')
        vault = InMemoryVault({'cmd_key': resolver})

        assert vault.get_secret('cmd_key') is None
        resolver.assert_not_called()

        callback = MagicMock()
        assert vault.run_with_secret('cmd_key', callback) is True
        callback.assert_called_once_with()
        assert vault.get_secret('cmd_key') == 'resolved-secret-value'

        vault.run_with_secret('cmd_key', callback)
        resolver.assert_called_once()

    @pytest.mark.parametrize('resolver', [MagicMock(return_value=''), MagicMock(return_value=None), MagicMock(side_effect=RuntimeError('boom'))])
    def test_failed_resolver(self, resolver):
        vault = InMemoryVault({'fail_key': resolver})
        callback = MagicMock()

        assert vault.run_with_secret('fail_key', callback) is False
        callback.assert_not_called()
        assert vault.get_secret('fail_key') is None

    def test_run_with_unknown_secret(self):
        callback = MagicMock()
        assert InMemoryVault().run_with_secret('nonexistent', callback) is False
        callback.assert_not_called()

    def test_from_config(self):
        vault = InMemoryVault.from_config({'anthropic': 'a', 'googleai': None})
        assert vault.get_secret('anthropic') == 'a'
        assert vault.get_secret('googleai') is None


@pytest.mark.parametrize('secret,expected', [('sk-abcdef123', 'sk-******123'), ('short', '*****'), (None, ''), ('', '')])
def test_obfuscate_secret(secret, expected):
    assert obfuscate_secret(secret) == expected
