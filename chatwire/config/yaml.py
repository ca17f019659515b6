"""YAML loading with !env support for secrets in configuration files."""

from __future__ import annotations

import os
from typing import Any

import yaml


class EnvLoader(yaml.SafeLoader):
    """SafeLoader that understands the !env tag."""


def _env_constructor(loader: EnvLoader, node: yaml.Node) -> Any:
    """Resolve `!env NAME` (required) or `!env [NAME, default]` (optional)."""
    if isinstance(node, yaml.ScalarNode):
        var_name = loader.construct_scalar(node)
        value = os.getenv(var_name)
        if value is None:
            raise yaml.constructor.ConstructorError(None, None, f"environment variable '{var_name}' is not set", node.start_mark)
        return value

    if isinstance(node, yaml.SequenceNode):
        values = loader.construct_sequence(node)
        if len(values) != 2 or not isinstance(values[0], str):
            raise yaml.constructor.ConstructorError(None, None, f'!env sequence must be [var_name, default], got {values!r}', node.start_mark)
        var_name, default_value = values
        return os.getenv(var_name, default_value)

    raise yaml.constructor.ConstructorError(None, None, f'!env expects a scalar or a [var_name, default] sequence, got {type(node).__name__}', node.start_mark)


EnvLoader.add_constructor('!env', _env_constructor)


def safe_load_with_env(stream) -> Any:
    """Drop-in replacement for yaml.safe_load() supporting !env tags."""
    return yaml.load(stream, Loader=EnvLoader)


__all__ = ['EnvLoader', 'safe_load_with_env']
