"""Turn a payload into the endpoint, headers and body sent to a provider."""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import orjson

from chatwire.common.exceptions import MissingCredentialException, UnknownProviderException
from chatwire.config.log import get_logger
from chatwire.config.models import ProviderConfig

logger = get_logger(__name__)

ANTHROPIC_VERSION = '2023-06-01'
ANTHROPIC_BETA_DEFAULT = 'messages-2023-12-15'
ANTHROPIC_BETA_WEB_FETCH = 'web-fetch-2025-09-10'
COPILOT_EDITOR_VERSION = 'vscode/1.85.1'

# Providers whose secret lives under another name
PROVIDER_SECRET_NAMES: Mapping[str, str] = {'copilot': 'copilot_bearer'}


@dataclass
class TransportCommand:
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b''
    method: str = 'POST'


def provider_secret_name(provider: str) -> str:
    return PROVIDER_SECRET_NAMES.get(provider, provider)


def _render(template: str, **values: Optional[str]) -> str:
    for key, value in values.items():
        template = template.replace('{{' + key + '}}', value or '')
    return template


def _anthropic_beta(payload: Mapping[str, Any]) -> str:
    for tool in payload.get('tools') or ():
        if isinstance(tool, Mapping) and tool.get('name') == 'web_fetch':
            return ANTHROPIC_BETA_WEB_FETCH
    return ANTHROPIC_BETA_DEFAULT


def build_command(provider: str, provider_config: Optional[ProviderConfig], secret: Optional[str], payload: Mapping[str, Any]) -> TransportCommand:
    """Build the transport command for one exchange.

    Raises UnknownProviderException when the provider has no endpoint and
    MissingCredentialException when no secret is given. The payload is not modified.
    """
    if provider_config is None or not provider_config.endpoint:
        raise UnknownProviderException(f'No endpoint configured for provider {provider}', provider=provider)
    if not secret:
        raise MissingCredentialException(f'{provider} bearer token is missing', provider=provider)

    endpoint = provider_config.endpoint
    body: Dict[str, Any] = dict(payload)
    model = body.get('model')

    if provider == 'copilot':
        headers = {'editor-version': COPILOT_EDITOR_VERSION, 'Authorization': f'Bearer {secret}'}
    elif provider == 'openai':
        # api-key kept for compatible gateways
        headers = {'Authorization': f'Bearer {secret}', 'api-key': secret}
    elif provider == 'googleai':
        headers = {}
        endpoint = _render(endpoint, secret=secret, model=model)
        body.pop('model', None)
        body.pop('stream', None)
    elif provider in ('anthropic', 'claude'):
        headers = {'x-api-key': secret, 'anthropic-version': ANTHROPIC_VERSION, 'anthropic-beta': _anthropic_beta(body)}
    elif provider == 'azure':
        headers = {'api-key': secret}
        endpoint = _render(endpoint, model=model)
    else:
        headers = {'Authorization': f'Bearer {secret}'}

    headers['Content-Type'] = 'application/json'
    return TransportCommand(url=endpoint, headers=headers, body=orjson.dumps(body))


__all__ = ['PROVIDER_SECRET_NAMES', 'TransportCommand', 'build_command', 'provider_secret_name']
