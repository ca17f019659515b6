"""Request/response dumping helpers for debugging and observability."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, BinaryIO, List, Optional, Union

import orjson

from chatwire.config.log import get_logger
from chatwire.config.models import ConfigModel

logger = get_logger(__name__)


class DumpType(Enum):
    """Types of artifacts captured by the dumper."""

    REQUEST = 'request'
    RESPONSE = 'response'


class DumpPathGenerator:
    """Derive deterministic filenames for dump artifacts."""

    EXTENSIONS = {DumpType.REQUEST: '.json', DumpType.RESPONSE: '.sse'}
    ORDERING = {DumpType.REQUEST: 1, DumpType.RESPONSE: 2}

    def generate_path(self, base_path: str, dump_type: DumpType) -> str:
        number = self.ORDERING[dump_type]
        extension = self.EXTENSIONS[dump_type]
        return f'{base_path}_{number}_{dump_type.value}{extension}'


@dataclass
class DumpFiles:
    """File metadata tracked during an exchange."""

    request: Optional[str] = None
    response: Optional[str] = None
    response_file: Optional[BinaryIO] = None


@dataclass
class DumpHandles:
    """Returned to the dispatcher so the response stream can be appended as it arrives."""

    files: DumpFiles
    query_id: str
    base_path: str


class Dumper:
    """Persist outbound payloads and raw provider responses for debugging."""

    def __init__(self, cfg: ConfigModel):
        self.cfg = cfg
        self.path_generator = DumpPathGenerator()

    @property
    def enabled(self) -> bool:
        return bool(self.cfg.dump_dir) and (self.cfg.dump_requests or self.cfg.dump_responses)

    def _ensure_dir(self) -> Optional[str]:
        if not self.cfg.dump_dir:
            return None
        try:
            os.makedirs(self.cfg.dump_dir, exist_ok=True)
            return self.cfg.dump_dir
        except OSError as e:
            logger.warning(f'Cannot create dump directory {self.cfg.dump_dir}: {e}')
            return None

    def _write_json_file(self, file_path: str, data: Any) -> bool:
        try:
            with open(file_path, 'wb') as handle:
                handle.write(orjson.dumps(data, option=orjson.OPT_INDENT_2))
            return True
        except (OSError, TypeError) as e:
            logger.warning(f'Failed to write dump {file_path}: {e}')
            return False

    def _open_streaming_file(self, file_path: str) -> Optional[BinaryIO]:
        try:
            return open(file_path, 'wb')
        except OSError as e:
            logger.warning(f'Failed to open dump {file_path}: {e}')
            return None

    def begin(self, query_id: str, payload: object) -> DumpHandles:
        dump_dir = self._ensure_dir() if self.enabled else None
        timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H-%M-%S.%fZ')

        files = DumpFiles()
        base_path = os.path.join(dump_dir, f'{timestamp}_{query_id}') if dump_dir else ''
        handles = DumpHandles(files=files, query_id=query_id, base_path=base_path)

        if not dump_dir:
            return handles

        if self.cfg.dump_requests:
            path = self.path_generator.generate_path(base_path, DumpType.REQUEST)
            if self._write_json_file(path, payload):
                files.request = path

        if self.cfg.dump_responses:
            path = self.path_generator.generate_path(base_path, DumpType.RESPONSE)
            files.response = path
            files.response_file = self._open_streaming_file(path)

        return handles

    def write_response_chunk(self, handles: DumpHandles, chunk: Union[bytes, str]) -> None:
        handle = handles.files.response_file
        if not handle or not chunk:
            return
        try:
            if isinstance(chunk, str):
                chunk = chunk.encode('utf-8')
            handle.write(chunk)
            handle.flush()
        except (OSError, ValueError) as e:
            logger.warning(f'Failed to append to dump {handles.files.response}: {e}')

    def close(self, handles: DumpHandles) -> None:
        handle = handles.files.response_file
        if handle:
            handle.close()
            handles.files.response_file = None

    def prune(self) -> int:
        """Keep the newest ``max_dump_files // 2`` dumps once more than ``max_dump_files`` exist."""
        if not self.cfg.dump_dir or not os.path.isdir(self.cfg.dump_dir):
            return 0

        files: List[str] = sorted((name for name in os.listdir(self.cfg.dump_dir) if name.endswith(('.json', '.sse'))), reverse=True)
        if len(files) <= self.cfg.max_dump_files:
            return 0

        logger.debug('too many dump files, truncating', count=len(files), limit=self.cfg.max_dump_files)
        removed = 0
        for name in files[self.cfg.max_dump_files // 2 :]:
            try:
                os.remove(os.path.join(self.cfg.dump_dir, name))
                removed += 1
            except OSError as e:
                logger.warning(f'Failed to remove dump {name}: {e}')
        return removed


__all__ = ['DumpFiles', 'DumpHandles', 'DumpPathGenerator', 'DumpType', 'Dumper']
