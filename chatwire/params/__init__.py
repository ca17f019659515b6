from chatwire.params.resolver import AgentConfig, ValidationResult, resolve_params, validate_agent
from chatwire.params.schema import ExclusiveGroup, ModelMatch, ModelOverride, ParamSpec, Schema, get_schema

__all__ = [
    'AgentConfig',
    'ExclusiveGroup',
    'ModelMatch',
    'ModelOverride',
    'ParamSpec',
    'Schema',
    'ValidationResult',
    'get_schema',
    'resolve_params',
    'validate_agent',
]
