from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

from chatwire.common.utils import get_app_dir
from chatwire.config.yaml import safe_load_with_env

DEFAULT_PROVIDERS: Dict[str, Dict[str, Any]] = {
    'openai': {'endpoint': 'https://api.openai.com/v1/chat/completions'},
    'anthropic': {'endpoint': 'https://api.anthropic.com/v1/messages'},
    'googleai': {'endpoint': 'https://generativelanguage.googleapis.com/v1beta/models/{{model}}:streamGenerateContent?key={{secret}}'},
    'ollama': {'endpoint': 'http://localhost:11434/v1/chat/completions', 'disable': True},
}


class LoggingConfig(BaseModel):
    """Logging configuration model."""

    level: str = Field(default='INFO', description='Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)')
    console_enabled: bool = Field(default=True, description='Enable console logging')
    file_enabled: bool = Field(default=False, description='Enable file logging')
    log_file_dir: Optional[str] = Field(default=None, description='Log directory (defaults to ~/.chatwire/logs)')
    max_file_size: str = Field(default='10MB', description='Maximum log file size before rotation')
    backup_count: int = Field(default=4, description='Number of backup files to keep')


class ProviderConfig(BaseModel):
    """Endpoint settings for one provider."""

    model_config = ConfigDict(extra='allow')

    endpoint: Optional[str] = Field(default=None, description='Streaming endpoint; may contain {{model}} and {{secret}} placeholders')
    disable: bool = Field(default=False)


class RawModeConfig(BaseModel):
    """Raw response passthrough settings."""

    show_raw_response: bool = Field(default=False, description='Emit raw stream lines inside a json fence instead of extracted text')


class QueryRegistryConfig(BaseModel):
    """Eviction thresholds applied whenever a query is registered."""

    max_count: int = Field(default=10, ge=0)
    max_age_seconds: float = Field(default=60, ge=0)


class ConfigModel(BaseModel):
    """Configuration model with validation."""

    model_config = ConfigDict(extra='allow')

    version: str = Field(default='1', description='Config version')
    host: str = Field(default='127.0.0.1')
    port: int = Field(default=8000, ge=1, le=65535)
    dev: bool = Field(default=False)
    timeout: float = Field(default=300.0, gt=0, description='Transport timeout in seconds')
    providers: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description='Per-provider overrides merged over the defaults; an empty entry disables a provider')
    api_keys: Dict[str, Optional[str]] = Field(default_factory=dict, description='Provider secrets, usually given with !env')
    raw_mode: RawModeConfig = Field(default_factory=RawModeConfig)
    claude_web_search: bool = Field(default=True, description='Default for the per-session web search tool flag')
    query_registry: QueryRegistryConfig = Field(default_factory=QueryRegistryConfig)
    dump_requests: bool = Field(default=False)
    dump_responses: bool = Field(default=False)
    dump_dir: Optional[str] = Field(default=None)
    max_dump_files: int = Field(default=200, ge=0)
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description='Logging configuration')

    def provider_configs(self) -> Dict[str, ProviderConfig]:
        """Merge configured provider overrides over the defaults.

        Disabled providers are dropped; providers without an endpoint are kept so the
        caller can report them.
        """
        merged: Dict[str, Dict[str, Any]] = {name: dict(values) for name, values in DEFAULT_PROVIDERS.items()}
        for name, values in self.providers.items():
            if not values:
                merged[name] = {'disable': True}
                continue
            entry = merged.setdefault(name, {})
            entry['disable'] = False
            entry.update(values)

        return {name: ProviderConfig(**values) for name, values in merged.items() if not values.get('disable')}

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> 'ConfigModel':
        """Load configuration from YAML file.

        Tries multiple locations in order:
        1. Explicit config_path if provided
        2. ~/.chatwire/config.yaml in user home directory
        3. ./config.yaml in current directory
        """
        config_paths = []
        if config_path:
            config_paths.append(config_path)
        else:
            home_config = get_app_dir() / 'config.yaml'
            if home_config.exists():
                config_paths.append(str(home_config))
            config_paths.append('config.yaml')

        data = {}
        for path in config_paths:
            try:
                with open(path, 'r') as f:
                    file_data = safe_load_with_env(f) or {}
                    data.update(file_data)
            except FileNotFoundError:
                continue
            except yaml.YAMLError as e:
                raise ValueError(f'Invalid YAML in config file {path}: {e}')
            except OSError as e:
                raise ValueError(f'Error reading config file {path}: {e}')

        return cls(**data)

    def save(self, config_path: str) -> None:
        """Save configuration to YAML file."""
        with open(config_path, 'w') as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False, sort_keys=False, indent=2)
