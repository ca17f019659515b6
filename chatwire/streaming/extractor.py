"""Per-line content and usage extraction for every provider family.

Each extractor receives one trimmed line of stream output and returns the text it
carries, or an empty string. Usage numbers found on the way are written into the
staging ``Metrics`` of the exchange. Extraction never raises: malformed lines yield
empty text and leave the metrics untouched.
"""

import re
from typing import Any, Callable, Dict, Mapping, Optional

import orjson

from chatwire.config.log import get_logger
from chatwire.providers.types import ProviderFamily, family_for
from chatwire.streaming.metrics import Metrics

logger = get_logger(__name__)

DATA_PREFIX = 'data: '
DONE_MARKER = '[DONE]'

# Best-effort integers from chat-completion usage lines that failed to parse
_PROMPT_TOKENS_RE = re.compile(r'["\']?prompt_tokens["\']?\s*[:=]\s*(\d+)')
_CACHED_TOKENS_RE = re.compile(r'["\']?cached_tokens["\']?\s*[:=]\s*(\d+)')

_GEMINI_TEXT_RE = re.compile(r'"text"\s*:\s*("(?:[^"\\]|\\.)*")')
_GEMINI_PROMPT_TOKENS_RE = re.compile(r'"promptTokenCount"\s*:\s*(\d+)')
_GEMINI_CANDIDATES_TOKENS_RE = re.compile(r'"candidatesTokenCount"\s*:\s*(\d+)')

_ANTHROPIC_TEXT_EVENTS = ('content_block_start', 'content_block_delta')

Extractor = Callable[[str, Optional[Metrics]], str]


def _parse_object(line: str) -> Optional[Dict[str, Any]]:
    if not (line.startswith('{') and line.endswith('}')):
        return None
    try:
        data = orjson.loads(line)
    except orjson.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return None


def _first(items: Any) -> Mapping[str, Any]:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def extract_chat_completions(line: str, metrics: Optional[Metrics] = None) -> str:
    data = _parse_object(line)

    if data is None:
        if metrics is not None and 'prompt_tokens' in line:
            _commit_usage_from_text(line, metrics)
        return ''

    usage = data.get('usage')
    if metrics is not None and isinstance(usage, dict):
        details = usage.get('prompt_tokens_details')
        cached = details.get('cached_tokens') if isinstance(details, dict) else None
        metrics.input_tokens = _as_int(usage.get('prompt_tokens'))
        metrics.cache_read_tokens = _as_int(cached) or 0
        metrics.cache_creation_tokens = 0
        metrics.output_tokens = _as_int(usage.get('completion_tokens'))

    delta = _first(data.get('choices')).get('delta')
    if not isinstance(delta, dict):
        return ''
    content = delta.get('content')
    return content if isinstance(content, str) else ''


def _commit_usage_from_text(line: str, metrics: Metrics) -> None:
    prompt_match = _PROMPT_TOKENS_RE.search(line)
    if not prompt_match:
        return
    cached_match = _CACHED_TOKENS_RE.search(line)
    metrics.input_tokens = int(prompt_match.group(1))
    metrics.cache_read_tokens = int(cached_match.group(1)) if cached_match else 0
    metrics.cache_creation_tokens = 0
    logger.debug('Recovered usage from unparseable line', input_tokens=metrics.input_tokens, cache_read_tokens=metrics.cache_read_tokens)


def extract_anthropic(line: str, metrics: Optional[Metrics] = None) -> str:
    data = _parse_object(line)
    if data is None:
        return ''

    if metrics is not None:
        usage = data.get('usage')
        if not isinstance(usage, dict):
            message = data.get('message')
            usage = message.get('usage') if isinstance(message, dict) else None
        if isinstance(usage, dict):
            _commit_anthropic_usage(usage, metrics)

    if '"text":' not in line or not any(event in line for event in _ANTHROPIC_TEXT_EVENTS):
        return ''

    content = ''
    delta = data.get('delta')
    if isinstance(delta, dict) and isinstance(delta.get('text'), str):
        content = delta['text']
    block = data.get('content_block')
    if isinstance(block, dict) and isinstance(block.get('text'), str):
        content = block['text']
    return content


def _commit_anthropic_usage(usage: Mapping[str, Any], metrics: Metrics) -> None:
    """A usage block sets every field; fields it omits keep the last value seen, else 0."""

    def pick(key: str, previous: Optional[int]) -> int:
        value = _as_int(usage.get(key))
        if value is not None:
            return value
        return previous if previous is not None else 0

    metrics.input_tokens = pick('input_tokens', metrics.input_tokens)
    metrics.cache_creation_tokens = pick('cache_creation_input_tokens', metrics.cache_creation_tokens)
    metrics.cache_read_tokens = pick('cache_read_input_tokens', metrics.cache_read_tokens)
    metrics.output_tokens = pick('output_tokens', metrics.output_tokens)


def extract_gemini(line: str, metrics: Optional[Metrics] = None) -> str:
    """Handles SSE objects and the lines of a pretty-printed JSON array stream."""
    data = _parse_object(line)
    if data is not None:
        return _extract_gemini_object(data, metrics)

    if metrics is not None:
        prompt_match = _GEMINI_PROMPT_TOKENS_RE.search(line)
        if prompt_match:
            _commit_gemini_prompt(int(prompt_match.group(1)), metrics)
        candidates_match = _GEMINI_CANDIDATES_TOKENS_RE.search(line)
        if candidates_match:
            metrics.output_tokens = int(candidates_match.group(1))

    parts = []
    for match in _GEMINI_TEXT_RE.finditer(line):
        try:
            text = orjson.loads(match.group(1))
        except orjson.JSONDecodeError:
            logger.debug(f'Skipping malformed text value: {match.group(1)[:80]}')
            continue
        parts.append(text)
    return ''.join(parts)


def _extract_gemini_object(data: Mapping[str, Any], metrics: Optional[Metrics]) -> str:
    usage = data.get('usageMetadata')
    if metrics is not None and isinstance(usage, dict):
        prompt_tokens = _as_int(usage.get('promptTokenCount'))
        if prompt_tokens is not None:
            _commit_gemini_prompt(prompt_tokens, metrics)
        candidates_tokens = _as_int(usage.get('candidatesTokenCount'))
        if candidates_tokens is not None:
            metrics.output_tokens = candidates_tokens

    content = _first(data.get('candidates')).get('content')
    if not isinstance(content, dict):
        return ''
    parts = content.get('parts')
    if not isinstance(parts, list):
        return ''
    return ''.join(part['text'] for part in parts if isinstance(part, dict) and isinstance(part.get('text'), str))


def _commit_gemini_prompt(prompt_tokens: int, metrics: Metrics) -> None:
    # No cache tier on this family
    metrics.input_tokens = prompt_tokens
    metrics.cache_read_tokens = 0
    metrics.cache_creation_tokens = 0


EXTRACTORS: Mapping[ProviderFamily, Extractor] = {
    ProviderFamily.CHAT_COMPLETIONS: extract_chat_completions,
    ProviderFamily.ANTHROPIC_MESSAGES: extract_anthropic,
    ProviderFamily.GEMINI: extract_gemini,
}


def extract_content(line: str, provider: Optional[str], metrics: Optional[Metrics] = None) -> str:
    """Return the text carried by one stream line for the given provider.

    Unknown providers yield an empty string. Usage found on the line is written into
    ``metrics`` when one is given.
    """
    if line.startswith(DATA_PREFIX):
        line = line[len(DATA_PREFIX) :]
    line = line.strip()
    if not line or line == DONE_MARKER:
        return ''

    family = family_for(provider)
    if family is None:
        return ''

    try:
        return EXTRACTORS[family](line, metrics)
    except Exception as e:
        logger.debug(f'Failed to extract content from {provider} line: {e}', line=line[:200])
        return ''


__all__ = ['DATA_PREFIX', 'DONE_MARKER', 'EXTRACTORS', 'extract_anthropic', 'extract_chat_completions', 'extract_content', 'extract_gemini']
