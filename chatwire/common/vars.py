from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

# Id of the exchange currently being handled, picked up by the log processor
query_id_var: ContextVar[Optional[str]] = ContextVar('query_id', default=None)


def get_query_id() -> Optional[str]:
    """Get the exchange id bound to the current context."""
    return query_id_var.get()


@contextmanager
def bound_query_id(query_id: str) -> Iterator[None]:
    """Bind an exchange id for the duration of a block."""
    token = query_id_var.set(query_id)
    try:
        yield
    finally:
        query_id_var.reset(token)
