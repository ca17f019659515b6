from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Optional


@dataclass
class Metrics:
    """Usage numbers of one exchange. ``None`` means the provider reported nothing."""

    input_tokens: Optional[int] = None
    cache_creation_tokens: Optional[int] = None
    cache_read_tokens: Optional[int] = None
    output_tokens: Optional[int] = None

    def copy(self) -> 'Metrics':
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MetricsCell:
    """Process-wide metrics slot.

    Each completed exchange overwrites the whole value; nothing is merged across
    exchanges, so concurrent exchanges finishing close together clobber each other.
    """

    def __init__(self, initial: Optional[Metrics] = None):
        self._value = initial.copy() if initial else Metrics()

    def set(self, metrics: Metrics) -> None:
        self._value = metrics.copy()

    def get(self) -> Metrics:
        return self._value.copy()


__all__ = ['Metrics', 'MetricsCell']
