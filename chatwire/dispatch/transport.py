"""Transport contract and the httpx streaming implementation."""

import asyncio
from typing import Any, Callable, Optional, Protocol, Union

import httpx

from chatwire.config.log import get_logger
from chatwire.dispatch.request import TransportCommand

logger = get_logger(__name__)

OutReader = Callable[[Optional[bytes]], None]
ErrReader = Callable[[str], None]
ExitHandler = Callable[[int], None]


class Transport(Protocol):
    def run(self, command: TransportCommand, out_reader: OutReader, err_reader: ErrReader, on_exit: ExitHandler) -> Any:
        """Start sending ``command`` without blocking.

        ``out_reader`` receives response bytes zero or more times, then ``None`` once
        the stream ends; ``on_exit`` gets the exit code afterwards.
        """
        ...


class HttpxTransport:
    """Streams the response body of a POST into the readers from an asyncio task."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: Union[float, httpx.Timeout] = 300.0):
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout), http2=True)

    def run(self, command: TransportCommand, out_reader: OutReader, err_reader: ErrReader, on_exit: ExitHandler) -> 'asyncio.Task[int]':
        return asyncio.get_running_loop().create_task(self._stream(command, out_reader, err_reader, on_exit))

    async def _stream(self, command: TransportCommand, out_reader: OutReader, err_reader: ErrReader, on_exit: ExitHandler) -> int:
        exit_code = 0
        try:
            async with self._client.stream(command.method, command.url, headers=command.headers, content=command.body) as resp:
                if resp.is_error:
                    exit_code = 1
                    logger.error(f"Provider returned HTTP {resp.status_code} for {command.method} {command.url.split('?')[0]}")
                async for chunk in resp.aiter_bytes():
                    if chunk:
                        out_reader(chunk)
        except httpx.HTTPError as e:
            exit_code = 1
            logger.error(f'Transport error: {type(e).__name__}: {e}')
            err_reader(f'{type(e).__name__}: {e}')
        except Exception:
            # Raised by a reader; the task carries it after the exit code is reported
            exit_code = 1
            raise
        finally:
            out_reader(None)
            on_exit(exit_code)
        return exit_code

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ['ErrReader', 'ExitHandler', 'HttpxTransport', 'OutReader', 'Transport']
