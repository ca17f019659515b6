"""Exchange orchestration.

``Dispatcher.query`` registers the exchange, waits for the vault to make the secret
available, builds the transport command and wires transport output into the stream
decoder of the exchange. It never raises: failures are logged, recorded on the
registry entry and the exchange is finished so the caller's exit and completion
handlers still fire.
"""

import asyncio
import functools
from typing import Any, Callable, Dict, Optional, Sequence, TypeVar

from chatwire.common.exceptions import DispatchException, MissingCredentialException, TransportException
from chatwire.common.utils import generate_query_id
from chatwire.common.vars import bound_query_id
from chatwire.config.log import get_logger
from chatwire.config.models import ConfigModel, ProviderConfig
from chatwire.dispatch.request import build_command, provider_secret_name
from chatwire.dispatch.transport import ErrReader, ExitHandler, HttpxTransport, OutReader, Transport
from chatwire.dispatch.vault import CredentialVault, InMemoryVault
from chatwire.observability.dumper import DumpHandles, Dumper
from chatwire.params.resolver import ModelConfig
from chatwire.payload.builder import prepare_payload
from chatwire.payload.models import MessageLike, SessionState
from chatwire.registry.queries import QueryEntry, QueryRegistry
from chatwire.streaming.decoder import CompleteHandler, DeltaHandler, StreamDecoder
from chatwire.streaming.decoder import ExitHandler as QueryExitHandler
from chatwire.streaming.metrics import Metrics, MetricsCell

logger = get_logger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def once(fn: F) -> F:
    """Wrap ``fn`` so that only the first call runs; later calls return None."""
    called = False

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        nonlocal called
        if called:
            logger.debug(f'Ignoring repeated call to {getattr(fn, "__name__", fn)}')
            return None
        called = True
        return fn(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


class Dispatcher:
    def __init__(
        self,
        config: ConfigModel,
        vault: Optional[CredentialVault] = None,
        transport: Optional[Transport] = None,
        registry: Optional[QueryRegistry] = None,
        metrics: Optional[MetricsCell] = None,
        session: Optional[SessionState] = None,
        dumper: Optional[Dumper] = None,
    ):
        self.config = config
        self.providers: Dict[str, ProviderConfig] = config.provider_configs()
        self.vault = vault if vault is not None else InMemoryVault.from_config(config.api_keys)
        self.transport = transport if transport is not None else HttpxTransport(timeout=config.timeout)
        self.registry = registry if registry is not None else QueryRegistry(config.query_registry)
        self.metrics = metrics if metrics is not None else MetricsCell()
        self.session = session if session is not None else SessionState(claude_web_search=config.claude_web_search)
        self.dumper = dumper if dumper is not None else Dumper(config)
        self.dumper.prune()

        for name, provider_config in self.providers.items():
            if not provider_config.endpoint:
                logger.warning(f'Provider {name} has no endpoint configured and cannot be queried')
        logger.debug(f'Dispatcher ready with providers: {", ".join(sorted(self.providers))}')

    def prepare_payload(self, messages: Sequence[MessageLike], model_config: ModelConfig, provider: str) -> Dict[str, Any]:
        return prepare_payload(messages, model_config, provider, self.session)

    def get_metrics(self) -> Metrics:
        return self.metrics.get()

    def get_query(self, query_id: str) -> Optional[QueryEntry]:
        return self.registry.get_query(query_id)

    def query(
        self,
        context: Any,
        provider: str,
        payload: Dict[str, Any],
        on_delta: DeltaHandler,
        on_exit: Optional[QueryExitHandler] = None,
        on_complete: Optional[CompleteHandler] = None,
    ) -> Optional[str]:
        """Start one exchange and return its id, or None when ``on_delta`` is not callable."""
        if not callable(on_delta):
            logger.error(f'query() expects a handler function, but got {type(on_delta).__name__}: {on_delta!r}')
            return None

        query_id = generate_query_id()
        with bound_query_id(query_id):
            logger.debug('query to send', provider=provider, payload=payload)

            decoder = StreamDecoder(
                query_id,
                provider,
                on_delta,
                on_exit=on_exit,
                on_complete=on_complete,
                raw_mode=self.config.raw_mode.show_raw_response,
                metrics_cell=self.metrics,
            )
            self.registry.set_query(query_id, payload, provider=provider, context=context, decoder=decoder)

            send = once(functools.partial(self._send, query_id, provider, payload))
            secret_name = provider_secret_name(provider)
            if not self.vault.run_with_secret(secret_name, send):
                self._fail(query_id, MissingCredentialException(f'{provider} secret {secret_name} is not available', provider=provider, query_id=query_id))

        return query_id

    def _send(self, query_id: str, provider: str, payload: Dict[str, Any]) -> None:
        with bound_query_id(query_id):
            if query_id not in self.registry:
                logger.warning(f'Query {query_id} was evicted before it could be sent')
                return

            secret = self.vault.get_secret(provider_secret_name(provider))
            try:
                command = build_command(provider, self.providers.get(provider), secret, payload)
            except DispatchException as e:
                e.query_id = query_id
                self._fail(query_id, e)
                return

            handles = self.dumper.begin(query_id, payload)
            try:
                task = self.transport.run(command, self._out_reader(query_id, handles), self._err_reader(query_id, provider), self._exit_handler(query_id))
            except Exception as e:
                logger.error(f'Failed to start transport for {provider}: {e}', exc_info=True)
                self.dumper.close(handles)
                self._fail(query_id, TransportException(str(e), provider=provider, query_id=query_id))
                return

            if isinstance(task, asyncio.Future):
                entry = self.registry.get_query(query_id)
                if entry is not None:
                    entry.task = task
                task.add_done_callback(self._task_done(query_id, provider))

    def _task_done(self, query_id: str, provider: str) -> Callable[['asyncio.Future[Any]'], None]:
        def done(task: 'asyncio.Future[Any]') -> None:
            if task.cancelled():
                return
            error = task.exception()
            if error is None:
                return
            with bound_query_id(query_id):
                logger.error(f'{provider} query failed: {type(error).__name__}: {error}', exc_info=error)
                entry = self.registry.get_query(query_id)
                if entry is not None:
                    entry.error = f'{type(error).__name__}: {error}'

        return done

    def _fail(self, query_id: str, error: DispatchException) -> None:
        logger.warning(error.message, provider=error.provider)
        entry = self.registry.get_query(query_id)
        if entry is None:
            return
        entry.error = error.message
        if isinstance(error, TransportException) and error.exit_code is not None:
            entry.exit_code = error.exit_code
        if entry.decoder is not None:
            entry.decoder.feed(None)

    def _out_reader(self, query_id: str, handles: DumpHandles) -> OutReader:
        def out_reader(chunk: Optional[bytes]) -> None:
            with bound_query_id(query_id):
                # End of stream only closes the dump; the exit handler finishes the decoder
                # once the exit code is recorded
                if chunk is None:
                    self.dumper.close(handles)
                    return
                self.dumper.write_response_chunk(handles, chunk)

                # Looked up per chunk so an evicted exchange stops receiving data
                entry = self.registry.get_query(query_id)
                if entry is None or entry.decoder is None:
                    return
                entry.decoder.feed(chunk)

        return out_reader

    def _err_reader(self, query_id: str, provider: str) -> ErrReader:
        def err_reader(message: str) -> None:
            with bound_query_id(query_id):
                logger.error(f'{provider} query stderr: {message}')
                entry = self.registry.get_query(query_id)
                if entry is not None:
                    entry.error = message

        return err_reader

    def _exit_handler(self, query_id: str) -> ExitHandler:
        def on_exit(code: int) -> None:
            with bound_query_id(query_id):
                entry = self.registry.get_query(query_id)
                if entry is None:
                    return
                entry.exit_code = code
                if code != 0:
                    if entry.error is None:
                        entry.error = f'transport exited with code {code}'
                    logger.warning(f'{entry.provider} query exited with code {code}')
                if entry.decoder is not None:
                    entry.decoder.feed(None)

        return on_exit


__all__ = ['Dispatcher', 'once']
