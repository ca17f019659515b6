"""Per-exchange stream decoder.

The transport hands over byte fragments cut at arbitrary boundaries. The decoder
reassembles complete lines, runs them through the provider extractor and reports
deltas to the caller. ``feed(None)`` marks the end of the stream: the partial line
left in the buffer is flushed, metrics are committed to the shared cell and the exit
and completion handlers fire, once each.
"""

import codecs
from enum import Enum
from typing import Callable, List, Optional, Union

import orjson

from chatwire.config.log import get_logger
from chatwire.providers.types import ProviderFamily, family_for
from chatwire.streaming.extractor import extract_content
from chatwire.streaming.metrics import Metrics, MetricsCell

logger = get_logger(__name__)

RAW_OPEN_FENCE = '```json\n'
RAW_CLOSE_FENCE = '```'

Chunk = Union[bytes, str, None]
DeltaHandler = Callable[[str, str], None]
ExitHandler = Callable[[str], None]
CompleteHandler = Callable[[str], None]


class DecoderState(str, Enum):
    STREAMING = 'streaming'
    FLUSHING = 'flushing'
    DONE = 'done'


class StreamDecoder:
    """Line reassembly and delta emission for one exchange."""

    def __init__(
        self,
        query_id: str,
        provider: Optional[str],
        on_delta: DeltaHandler,
        on_exit: Optional[ExitHandler] = None,
        on_complete: Optional[CompleteHandler] = None,
        raw_mode: bool = False,
        metrics_cell: Optional[MetricsCell] = None,
    ):
        self.query_id = query_id
        self.provider = provider
        self.raw_mode = raw_mode
        self.state = DecoderState.STREAMING

        self._on_delta = on_delta
        self._on_exit = on_exit
        self._on_complete = on_complete
        self._metrics_cell = metrics_cell

        self._utf8 = codecs.getincrementaldecoder('utf-8')(errors='replace')
        self._buffer = ''
        self._response: List[str] = []
        self._raw_lines: List[str] = []
        self._is_first_emission = True
        self._metrics = Metrics()

    @property
    def response(self) -> str:
        return ''.join(self._response)

    @property
    def raw_response(self) -> str:
        return '\n'.join(self._raw_lines)

    @property
    def metrics(self) -> Metrics:
        return self._metrics.copy()

    @property
    def is_done(self) -> bool:
        return self.state is DecoderState.DONE

    def feed(self, chunk: Chunk) -> None:
        """Consume one fragment; ``None`` ends the stream."""
        if self.state is not DecoderState.STREAMING:
            logger.warning(f'Ignoring chunk delivered after end of stream for query {self.query_id}')
            return

        if chunk is None:
            self._finish()
            return

        text = self._utf8.decode(chunk) if isinstance(chunk, (bytes, bytearray)) else chunk
        if not text:
            return

        self._buffer += text
        if '\n' not in text:
            return

        complete, _, self._buffer = self._buffer.rpartition('\n')
        for line in complete.split('\n'):
            self._process_line(line)

    def _process_line(self, line: str) -> None:
        line = line.strip()
        if not line:
            return
        self._raw_lines.append(line)

        if self.raw_mode:
            # Text is discarded but usage still counts
            extract_content(line, self.provider, self._metrics)
            self._emit(f'{RAW_OPEN_FENCE}{line}' if self._is_first_emission else line)
            return

        content = extract_content(line, self.provider, self._metrics)
        if content:
            self._emit(content)

    def _emit(self, text: str) -> None:
        self._is_first_emission = False
        self._response.append(text)
        self._on_delta(self.query_id, text)

    def _finish(self) -> None:
        self.state = DecoderState.FLUSHING

        self._buffer += self._utf8.decode(b'', final=True)
        tail, self._buffer = self._buffer, ''
        if tail.strip():
            self._process_line(tail)

        if self.raw_mode:
            if not self._is_first_emission:
                self._emit(RAW_CLOSE_FENCE)
        elif not self._response:
            self._emit_complete_response_fallback()

        logger.debug(f'{self.provider} response', query_id=self.query_id, raw_response=self.raw_response)
        if self._metrics_cell is not None:
            self._metrics_cell.set(self._metrics)

        response = self.response
        if not response:
            logger.error(f'{self.provider} response is empty', query_id=self.query_id, raw_response=self.raw_response)

        self.state = DecoderState.DONE
        if self._on_exit is not None:
            self._on_exit(self.query_id)
        if self._on_complete is not None:
            self._on_complete(response)

    def _emit_complete_response_fallback(self) -> None:
        """Chat-completion endpoints that ignored ``stream`` answer with one whole object."""
        if family_for(self.provider) is not ProviderFamily.CHAT_COMPLETIONS or not self._raw_lines:
            return
        try:
            data = orjson.loads(self.raw_response)
        except orjson.JSONDecodeError:
            return
        if not isinstance(data, dict):
            return

        choices = data.get('choices')
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return
        message = choices[0].get('message')
        content = message.get('content') if isinstance(message, dict) else None
        if isinstance(content, str) and content:
            logger.debug(f'Using non-streaming response content for query {self.query_id}')
            self._emit(content)


__all__ = ['Chunk', 'DecoderState', 'RAW_CLOSE_FENCE', 'RAW_OPEN_FENCE', 'StreamDecoder']
