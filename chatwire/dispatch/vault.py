"""Credential vault contract and the in-memory implementation used by default."""

from typing import Callable, Dict, Mapping, Optional, Protocol, Union

from chatwire.config.log import get_logger

logger = get_logger(__name__)

SecretCallback = Callable[[], None]
SecretResolver = Callable[[], Optional[str]]
SecretSource = Union[str, SecretResolver, None]

# Provider names stored under a different secret name
SECRET_ALIASES: Mapping[str, str] = {'openai': 'openai_api_key'}


def secret_name(name: str) -> str:
    return SECRET_ALIASES.get(name, name)


def obfuscate_secret(secret: Optional[str]) -> str:
    """Keep the first and last three characters visible for logging."""
    if not secret:
        return ''
    if len(secret) <= 6:
        return '*' * len(secret)
    return f'{secret[:3]}{"*" * (len(secret) - 6)}{secret[-3:]}'


class CredentialVault(Protocol):
    def get_secret(self, name: str) -> Optional[str]: ...

    def run_with_secret(self, name: str, callback: SecretCallback) -> bool:
        """Invoke ``callback`` once the secret is available.

        The callback may run synchronously or later. Returns False when no secret is
        known under ``name``, in which case the callback is never invoked.
        """
        ...


class InMemoryVault:
    """Secrets held in process memory.

    A secret is either a string or a zero-argument resolver called lazily the first
    time the secret is needed. Adding a name twice keeps the first value.
    """

    def __init__(self, secrets: Optional[Mapping[str, SecretSource]] = None):
        self._sources: Dict[str, SecretSource] = {}
        self._secrets: Dict[str, str] = {}
        for name, source in (secrets or {}).items():
            self.add_secret(name, source)

    @classmethod
    def from_config(cls, api_keys: Mapping[str, Optional[str]]) -> 'InMemoryVault':
        return cls(api_keys)

    def add_secret(self, name: str, source: SecretSource) -> None:
        name = secret_name(name)
        if name in self._sources:
            logger.debug(f'Secret {name} already registered, keeping the first value')
            return
        self._sources[name] = source
        if isinstance(source, str) and source.strip():
            self._secrets[name] = source.strip()

    def get_secret(self, name: str) -> Optional[str]:
        return self._secrets.get(secret_name(name))

    def resolve_secret(self, name: str) -> Optional[str]:
        name = secret_name(name)
        if name in self._secrets:
            return self._secrets[name]

        source = self._sources.get(name)
        if not callable(source):
            return None

        try:
            value = source()
        except Exception as e:
            logger.error(f'Failed to resolve secret {name}: {e}')
            return None

        if not isinstance(value, str) or not value.strip():
            logger.error(f'Secret resolver for {name} returned nothing')
            return None

        self._secrets[name] = value.strip()
        logger.debug(f'Resolved secret {name}: {obfuscate_secret(self._secrets[name])}')
        return self._secrets[name]

    def run_with_secret(self, name: str, callback: SecretCallback) -> bool:
        if self.resolve_secret(name) is None:
            logger.warning(f'Secret {secret_name(name)} is not available')
            return False
        callback()
        return True


__all__ = ['SECRET_ALIASES', 'CredentialVault', 'InMemoryVault', 'SecretCallback', 'obfuscate_secret', 'secret_name']
