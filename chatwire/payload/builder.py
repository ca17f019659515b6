"""Provider-shaped request bodies built from a conversation and a model config."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from chatwire.config.log import get_logger
from chatwire.params.resolver import ModelConfig, model_name_of, resolve_params
from chatwire.params.schema import ModelMatch
from chatwire.payload.models import Message, MessageLike, SessionState, as_message
from chatwire.providers.types import ProviderFamily, family_for

logger = get_logger(__name__)

# Exact model identifiers rewritten to a pinned variant before sending
MODEL_REMAP: Mapping[Tuple[str, str], str] = {
    ('copilot', 'gpt-4o'): 'gpt-4o-2024-05-13',
}

REASONING_PROVIDERS = frozenset({'openai', 'copilot'})
REASONING_MODELS: Tuple[ModelMatch, ...] = (
    ModelMatch.prefix('o'),
    ModelMatch.exact('gpt-4o-search-preview'),
    ModelMatch.prefix('gpt-5'),
)
REASONING_OMITTED_PARAMS = ('temperature', 'top_p', 'max_tokens')

ANTHROPIC_WEB_TOOLS: Tuple[Dict[str, Any], ...] = (
    {'type': 'web_search_20250305', 'name': 'web_search', 'max_uses': 5},
    {'type': 'web_fetch_20250910', 'name': 'web_fetch', 'max_uses': 5},
)

GEMINI_ROLES = {'system': 'user', 'assistant': 'model'}
GEMINI_SAFETY_SETTINGS: Tuple[Dict[str, str], ...] = tuple(
    {'category': category, 'threshold': 'BLOCK_NONE'}
    for category in (
        'HARM_CATEGORY_HARASSMENT',
        'HARM_CATEGORY_HATE_SPEECH',
        'HARM_CATEGORY_SEXUALLY_EXPLICIT',
        'HARM_CATEGORY_DANGEROUS_CONTENT',
    )
)


def remap_model(provider: Optional[str], model: str) -> str:
    return MODEL_REMAP.get((provider or '', model), model)


def is_reasoning_model(provider: Optional[str], model: str) -> bool:
    """Reasoning models reject system messages and sampling controls."""
    return provider in REASONING_PROVIDERS and any(matcher.matches(model) for matcher in REASONING_MODELS)


def _with_model(model_config: ModelConfig, model: str) -> ModelConfig:
    if isinstance(model_config, Mapping):
        return {**model_config, 'model': model}
    return model


class PayloadBuilder(ABC):
    """Builds the request body for one provider family."""

    @abstractmethod
    def build(self, messages: Sequence[Message], model_config: ModelConfig, provider: Optional[str], session: SessionState) -> Dict[str, Any]:
        pass


class ChatCompletionsPayloadBuilder(PayloadBuilder):
    """Flat chat-completions body: parameters at the top level, usage streamed at the end."""

    def build(self, messages: Sequence[Message], model_config: ModelConfig, provider: Optional[str], session: SessionState) -> Dict[str, Any]:
        model = remap_model(provider, model_name_of(model_config))
        params = resolve_params(provider, _with_model(model_config, model))

        payload: Dict[str, Any] = {
            'model': model,
            'stream': True,
            'messages': [{'role': message.role, 'content': message.content} for message in messages],
            'stream_options': {'include_usage': True},
        }
        payload.update(params)

        if is_reasoning_model(provider, model):
            payload['messages'] = [message for message in payload['messages'] if message['role'] != 'system']
            for name in REASONING_OMITTED_PARAMS:
                payload.pop(name, None)

        return payload


class AnthropicPayloadBuilder(PayloadBuilder):
    """Messages API body with system prompts moved to the dedicated ``system`` array."""

    def build(self, messages: Sequence[Message], model_config: ModelConfig, provider: Optional[str], session: SessionState) -> Dict[str, Any]:
        system_blocks: List[Dict[str, Any]] = []
        conversation: List[Dict[str, Any]] = []

        for message in messages:
            if message.role == 'system':
                block: Dict[str, Any] = {'type': 'text', 'text': message.content}
                if message.cache_control:
                    block['cache_control'] = dict(message.cache_control)
                    logger.debug('Added cache_control to system block', cache_control=message.cache_control)
                system_blocks.append(block)
            else:
                conversation.append(self._convert_message(message))

        payload: Dict[str, Any] = {'model': model_name_of(model_config), 'stream': True, 'messages': conversation}
        payload.update(resolve_params(provider, model_config))

        if system_blocks:
            payload['system'] = system_blocks

        if session.claude_web_search:
            payload['tools'] = [dict(tool) for tool in ANTHROPIC_WEB_TOOLS]

        return payload

    def _convert_message(self, message: Message) -> Dict[str, Any]:
        if not message.cache_control:
            return {'role': message.role, 'content': message.content}
        return {'role': message.role, 'content': [{'type': 'text', 'text': message.content, 'cache_control': dict(message.cache_control)}]}


class GeminiPayloadBuilder(PayloadBuilder):
    """generateContent body: renamed roles, merged consecutive turns, nested generationConfig."""

    def build(self, messages: Sequence[Message], model_config: ModelConfig, provider: Optional[str], session: SessionState) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            'model': model_name_of(model_config),
            'stream': True,
            'contents': self._convert_messages(messages),
            'safetySettings': [dict(setting) for setting in GEMINI_SAFETY_SETTINGS],
        }

        generation_config = resolve_params(provider, model_config)
        if generation_config:
            payload['generationConfig'] = generation_config

        return payload

    def _convert_messages(self, messages: Sequence[Message]) -> List[Dict[str, Any]]:
        contents: List[Dict[str, Any]] = []
        for message in messages:
            role = GEMINI_ROLES.get(message.role, message.role)
            part = {'text': message.content}
            if contents and contents[-1]['role'] == role:
                contents[-1]['parts'].append(part)
            else:
                contents.append({'role': role, 'parts': [part]})
        return contents


PAYLOAD_BUILDERS: Mapping[ProviderFamily, PayloadBuilder] = {
    ProviderFamily.CHAT_COMPLETIONS: ChatCompletionsPayloadBuilder(),
    ProviderFamily.ANTHROPIC_MESSAGES: AnthropicPayloadBuilder(),
    ProviderFamily.GEMINI: GeminiPayloadBuilder(),
}


def prepare_payload(messages: Sequence[MessageLike], model_config: ModelConfig, provider: Optional[str], session: Optional[SessionState] = None) -> Dict[str, Any]:
    """Build a fresh request body for the provider.

    Providers outside the known families get the chat-completions shape. The caller's
    messages are never modified.
    """
    family = family_for(provider) or ProviderFamily.CHAT_COMPLETIONS
    builder = PAYLOAD_BUILDERS[family]
    payload = builder.build([as_message(message) for message in messages], model_config, provider, session or SessionState())
    logger.debug('payload prepared', provider=provider, family=family.value, model=payload.get('model'))
    return payload


__all__ = [
    'ANTHROPIC_WEB_TOOLS',
    'GEMINI_SAFETY_SETTINGS',
    'MODEL_REMAP',
    'PAYLOAD_BUILDERS',
    'AnthropicPayloadBuilder',
    'ChatCompletionsPayloadBuilder',
    'GeminiPayloadBuilder',
    'PayloadBuilder',
    'is_reasoning_model',
    'prepare_payload',
    'remap_model',
]
