"""In-flight exchange tracking.

Every exchange is registered under its opaque id when it starts. The entry owns the
stream decoder and transport task of the exchange, so removing an entry is what releases its buffers and
handler closures. Stale entries are swept whenever a new exchange is registered.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Optional

from chatwire.config.log import get_logger
from chatwire.config.models import QueryRegistryConfig
from chatwire.streaming.decoder import StreamDecoder

logger = get_logger(__name__)

Clock = Callable[[], float]


@dataclass
class QueryEntry:
    """One registered exchange."""

    id: str
    timestamp: float
    payload: Any
    provider: Optional[str] = None
    context: Any = None
    decoder: Optional[StreamDecoder] = None
    task: Any = None
    exit_code: Optional[int] = None
    error: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_done(self) -> bool:
        return self.decoder is not None and self.decoder.is_done

    def summary(self) -> Dict[str, Any]:
        """JSON-friendly view used by the diagnostics API."""
        return {
            'id': self.id,
            'timestamp': self.timestamp,
            'provider': self.provider,
            'payload': self.payload,
            'state': self.decoder.state.value if self.decoder is not None else None,
            'response': self.decoder.response if self.decoder is not None else None,
            'exit_code': self.exit_code,
            'error': self.error,
        }


class QueryRegistry:
    def __init__(self, config: Optional[QueryRegistryConfig] = None, clock: Clock = time.time):
        self.config = config or QueryRegistryConfig()
        self._clock = clock
        self._queries: Dict[str, QueryEntry] = {}

    def __len__(self) -> int:
        return len(self._queries)

    def __contains__(self, query_id: object) -> bool:
        return query_id in self._queries

    def __iter__(self) -> Iterator[QueryEntry]:
        return iter(list(self._queries.values()))

    def set_query(self, query_id: str, payload: Any, **fields: Any) -> QueryEntry:
        """Register (or replace) an exchange, then sweep stale entries."""
        known = {name: fields.pop(name) for name in ('provider', 'context', 'decoder', 'exit_code', 'error') if name in fields}
        entry = QueryEntry(id=query_id, timestamp=self._clock(), payload=payload, extra=fields, **known)
        self._queries[query_id] = entry
        self.cleanup_old_queries(self.config.max_count, self.config.max_age_seconds)
        return entry

    def get_query(self, query_id: str) -> Optional[QueryEntry]:
        entry = self._queries.get(query_id)
        if entry is None:
            logger.error(f'Query with ID {query_id} not found.')
        return entry

    def remove_query(self, query_id: str) -> Optional[QueryEntry]:
        return self._queries.pop(query_id, None)

    def cleanup_old_queries(self, max_count: int, max_age_seconds: float) -> int:
        """Drop entries older than ``max_age_seconds`` once more than ``max_count`` are held.

        Returns the number of entries removed.
        """
        if len(self._queries) <= max_count:
            return 0

        now = self._clock()
        stale = [query_id for query_id, entry in self._queries.items() if now - entry.timestamp > max_age_seconds]
        for query_id in stale:
            del self._queries[query_id]

        if stale:
            logger.debug(f'Removed {len(stale)} stale queries, {len(self._queries)} remaining')
        return len(stale)


__all__ = ['Clock', 'QueryEntry', 'QueryRegistry']
