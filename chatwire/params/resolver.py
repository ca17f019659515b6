"""Resolve caller parameters against a provider schema and validate agent configs."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from chatwire.params.schema import get_schema

ModelConfig = Union[str, Mapping[str, Any]]

# Keys of a model config that are not API parameters
META_KEYS = frozenset({'model'})


class AgentConfig(BaseModel):
    """A named provider + model pairing as configured by the user."""

    model_config = ConfigDict(extra='allow')

    name: Optional[str] = None
    provider: Optional[str] = None
    model: Union[str, Dict[str, Any]] = Field(default='')
    system_prompt: Optional[str] = None


@dataclass
class ValidationResult:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def model_name_of(model_config: Optional[ModelConfig]) -> str:
    """Return the model identifier of a bare-string or mapping model config."""
    if isinstance(model_config, str):
        return model_config
    if isinstance(model_config, Mapping):
        return model_config.get('model') or ''
    return ''


def resolve_params(provider: Optional[str], model_config: Optional[ModelConfig]) -> Dict[str, Any]:
    """Produce the parameters that should appear in the request body.

    Caller values are clamped to the declared range; omitted values fall back to the
    schema default; parameters left without a value are not sent at all. Keys are the
    wire names. A bare model string carries no parameters and resolves to ``{}``.
    """
    if not isinstance(model_config, Mapping):
        return {}

    schema = get_schema(provider, model_name_of(model_config))
    result: Dict[str, Any] = {}
    for name, spec in schema.params.items():
        value = model_config.get(name)
        if value is None:
            value = spec.default
        if value is None:
            continue
        result[spec.wire_name] = spec.clamp(value)
    return result


def validate_agent(agent: Union[AgentConfig, Mapping[str, Any]]) -> ValidationResult:
    """Check an agent's model config against its provider schema.

    Errors: missing provider, malformed model, exclusive-group violations.
    Warnings: parameters the schema does not declare, values outside their range.
    """
    if isinstance(agent, AgentConfig):
        provider, model_config = agent.provider, agent.model
    else:
        provider, model_config = agent.get('provider'), agent.get('model')

    result = ValidationResult()
    if not provider:
        result.errors.append("agent is missing 'provider' field")
        return result

    if isinstance(model_config, str):
        return result
    if not isinstance(model_config, Mapping):
        result.errors.append('agent model must be a string or a mapping')
        return result

    model_name = model_name_of(model_config)
    schema = get_schema(provider, model_name)

    for key in model_config:
        if key not in META_KEYS and key not in schema.params:
            result.warnings.append(f"unknown parameter '{key}' for provider '{provider}' model '{model_name}'")

    for group in schema.exclusive_groups:
        members = ', '.join(group.members)
        found = group.set_members(model_config)
        if group.at_most_one and len(found) > 1:
            result.errors.append(f"at most one of {{{members}}} may be set for model '{model_name}', but found: {', '.join(found)}")
        if group.require_one and not found:
            result.errors.append(f"exactly one of {{{members}}} is required for model '{model_name}'")

    for name, spec in schema.params.items():
        value = model_config.get(name)
        if value is not None and not spec.in_range(value):
            result.warnings.append(f"parameter '{name}' value {value} is outside range [{spec.min}, {spec.max}] (will be clamped)")

    return result


__all__ = ['AgentConfig', 'META_KEYS', 'ModelConfig', 'ValidationResult', 'model_name_of', 'resolve_params', 'validate_agent']
