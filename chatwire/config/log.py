import logging
import logging.handlers
import re
from pathlib import Path
from typing import TYPE_CHECKING, List

import orjson
import structlog
from structlog.types import FilteringBoundLogger

from chatwire.common.utils import get_app_dir
from chatwire.common.vars import get_query_id

if TYPE_CHECKING:
    from chatwire.config.models import LoggingConfig

_SIZE_MULTIPLIERS = {'B': 1, 'KB': 1024, 'MB': 1024**2, 'GB': 1024**3, 'TB': 1024**4}


def _orjson_serializer(*args, **kwargs) -> str:
    return orjson.dumps(*args, **kwargs).decode('utf-8')


def _parse_file_size(value: str) -> int:
    """Parse sizes like "10MB" into bytes, defaulting to 10MB."""
    size_match = re.match(r'(\d+)\s*([KMGT]?B?)', value.upper())
    if not size_match:
        return 10 * 1024 * 1024
    size_num = int(size_match.group(1))
    size_unit = size_match.group(2) or 'MB'
    if size_unit != 'B' and not size_unit.endswith('B'):
        size_unit += 'B'
    return size_num * _SIZE_MULTIPLIERS.get(size_unit, _SIZE_MULTIPLIERS['MB'])


def _create_log_handlers(log_config: 'LoggingConfig', log_dir: Path) -> List[logging.Handler]:
    """Create logging handlers based on configuration."""
    handlers: List[logging.Handler] = []

    if log_config.console_enabled:
        formatter = structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, structlog.processors.format_exc_info, structlog.dev.ConsoleRenderer()]
        )
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    if log_config.file_enabled:
        formatter = structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(serializer=_orjson_serializer),
            ]
        )
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / 'chatwire.log', maxBytes=_parse_file_size(log_config.max_file_size), backupCount=log_config.backup_count
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    return handlers


def _query_id_processor(logger, method_name, event_dict):
    """Add the current exchange id to log events if one is bound."""
    if 'query_id' not in event_dict:
        query_id = get_query_id()
        if query_id is not None:
            event_dict['query_id'] = query_id
    return event_dict


def get_logger(name: str) -> FilteringBoundLogger:
    """Get a configured structlog logger."""
    return structlog.get_logger(name)


def configure_structlog(log_config: 'LoggingConfig') -> None:
    """Configure structlog with console and optional rotating file output."""
    log_dir = Path(log_config.log_file_dir) if log_config.log_file_dir else get_app_dir() / 'logs'
    if log_config.file_enabled:
        if log_dir.exists() and not log_dir.is_dir():
            raise NotADirectoryError(f'Log directory {log_dir} is not a directory')
        log_dir.mkdir(exist_ok=True, parents=True)

    level = getattr(logging, log_config.level.upper())
    logging.basicConfig(level=level, handlers=_create_log_handlers(log_config, log_dir), format='%(message)s', force=True)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt='ISO', utc=True),
        _query_id_processor,
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
