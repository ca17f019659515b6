"""Provider parameter schemas.

Each provider has a base schema describing the tunable parameters it accepts: default,
valid range and the name used in the request body. Model-specific overrides are kept
as data: a table of model matchers, each paired with an ordered list of pure schema
transforms. Every matching override applies, in table order, so a later override can
remove or replace what an earlier one set.

A parameter with a ``None`` default is only sent when the caller sets it; a non-null
default is sent whenever the caller omits it.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple

SchemaTransform = Callable[['Schema'], 'Schema']


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class ParamSpec:
    """One tunable parameter of a provider."""

    name: str
    api_name: Optional[str] = None
    default: Any = None
    min: Optional[float] = None
    max: Optional[float] = None

    def __post_init__(self):
        if self.has_range and self.min > self.max:
            raise ValueError(f"parameter '{self.name}' has an empty range [{self.min}, {self.max}]")
        if self.has_range and _is_number(self.default) and not self.min <= self.default <= self.max:
            raise ValueError(f"parameter '{self.name}' default {self.default} is outside [{self.min}, {self.max}]")

    @property
    def wire_name(self) -> str:
        return self.api_name or self.name

    @property
    def has_range(self) -> bool:
        return self.min is not None and self.max is not None

    def in_range(self, value: Any) -> bool:
        if not self.has_range or not _is_number(value):
            return True
        return self.min <= value <= self.max

    def clamp(self, value: Any) -> Any:
        if not self.has_range or not _is_number(value):
            return value
        return max(self.min, min(self.max, value))


@dataclass(frozen=True)
class ExclusiveGroup:
    """Validation constraint over a set of parameters of one model."""

    members: Tuple[str, ...]
    at_most_one: bool = False
    require_one: bool = False

    def set_members(self, values: Mapping[str, Any]) -> Tuple[str, ...]:
        return tuple(name for name in self.members if values.get(name) is not None)


@dataclass(frozen=True)
class Schema:
    params: Mapping[str, ParamSpec] = field(default_factory=lambda: MappingProxyType({}))
    exclusive_groups: Tuple[ExclusiveGroup, ...] = ()

    @classmethod
    def of(cls, *specs: ParamSpec, groups: Iterable[ExclusiveGroup] = ()) -> 'Schema':
        return cls(params=MappingProxyType({spec.name: spec for spec in specs}), exclusive_groups=tuple(groups))

    def with_params(self, params: Dict[str, ParamSpec]) -> 'Schema':
        return replace(self, params=MappingProxyType(params))


# Schema transforms used by model overrides


def remove_params(*names: str) -> SchemaTransform:
    """Drop parameters the model does not accept."""

    def transform(schema: Schema) -> Schema:
        return schema.with_params({name: spec for name, spec in schema.params.items() if name not in names})

    return transform


def add_params(*specs: ParamSpec) -> SchemaTransform:
    """Add parameters, replacing any existing spec of the same name."""

    def transform(schema: Schema) -> Schema:
        params = dict(schema.params)
        params.update((spec.name, spec) for spec in specs)
        return schema.with_params(params)

    return transform


def rename_param(name: str, api_name: str) -> SchemaTransform:
    """Send an existing parameter under a different name; no-op if absent."""

    def transform(schema: Schema) -> Schema:
        if name not in schema.params:
            return schema
        params = dict(schema.params)
        params[name] = replace(params[name], api_name=api_name)
        return schema.with_params(params)

    return transform


def add_exclusive_group(*members: str, at_most_one: bool = False, require_one: bool = False) -> SchemaTransform:
    group = ExclusiveGroup(members=tuple(members), at_most_one=at_most_one, require_one=require_one)

    def transform(schema: Schema) -> Schema:
        return replace(schema, exclusive_groups=schema.exclusive_groups + (group,))

    return transform


@dataclass(frozen=True)
class ModelMatch:
    """Matches a model identifier exactly, by prefix or by substring."""

    kind: str
    value: str

    @classmethod
    def exact(cls, value: str) -> 'ModelMatch':
        return cls('exact', value)

    @classmethod
    def prefix(cls, value: str) -> 'ModelMatch':
        return cls('prefix', value)

    @classmethod
    def contains(cls, value: str) -> 'ModelMatch':
        return cls('contains', value)

    def matches(self, model: Optional[str]) -> bool:
        if not model:
            return False
        if self.kind == 'exact':
            return model == self.value
        if self.kind == 'prefix':
            return model.startswith(self.value)
        if self.kind == 'contains':
            return self.value in model
        raise ValueError(f'unknown match kind: {self.kind}')


@dataclass(frozen=True)
class ModelOverride:
    """Transforms applied when any of the matchers accepts the model identifier."""

    matchers: Tuple[ModelMatch, ...]
    transforms: Tuple[SchemaTransform, ...]
    description: str = ''

    def matches(self, model: Optional[str]) -> bool:
        return any(matcher.matches(model) for matcher in self.matchers)

    def apply(self, schema: Schema) -> Schema:
        for transform in self.transforms:
            schema = transform(schema)
        return schema


_TEMPERATURE = ParamSpec('temperature', min=0, max=2)
_TOP_P = ParamSpec('top_p', min=0, max=1)

BASE_SCHEMAS: Mapping[str, Schema] = MappingProxyType(
    {
        'openai': Schema.of(_TEMPERATURE, _TOP_P, ParamSpec('max_tokens', default=4096)),
        'anthropic': Schema.of(_TEMPERATURE, _TOP_P, ParamSpec('max_tokens', default=4096)),
        'googleai': Schema.of(
            _TEMPERATURE,
            ParamSpec('top_p', api_name='topP', min=0, max=1),
            ParamSpec('top_k', api_name='topK', default=100),
            ParamSpec('max_tokens', api_name='maxOutputTokens', default=8192),
        ),
        'ollama': Schema.of(_TEMPERATURE, _TOP_P, ParamSpec('min_p'), ParamSpec('max_tokens', default=4096)),
        'copilot': Schema.of(_TEMPERATURE, _TOP_P, ParamSpec('max_tokens', default=4096)),
    }
)

MODEL_OVERRIDES: Tuple[ModelOverride, ...] = (
    ModelOverride(
        matchers=(ModelMatch.prefix('o1'), ModelMatch.prefix('o3')),
        transforms=(remove_params('temperature', 'top_p', 'max_tokens'), add_params(ParamSpec('reasoning_effort', default='minimal'))),
        description='o-series reasoning models',
    ),
    ModelOverride(
        matchers=(ModelMatch.exact('gpt-4o-search-preview'),),
        transforms=(remove_params('temperature', 'top_p', 'max_tokens'),),
        description='search preview rejects sampling controls',
    ),
    ModelOverride(
        matchers=(ModelMatch.prefix('gpt-5'),),
        transforms=(
            remove_params('temperature', 'top_p'),
            add_params(ParamSpec('max_tokens', api_name='max_completion_tokens', default=4096)),
            add_params(ParamSpec('reasoning_effort', default='minimal')),
        ),
        description='gpt-5 family',
    ),
    ModelOverride(
        matchers=(ModelMatch.prefix('claude-sonnet-4-6'),),
        transforms=(add_exclusive_group('temperature', 'top_p', at_most_one=True),),
        description='temperature and top_p are mutually exclusive',
    ),
)


def get_schema(provider: Optional[str], model: Optional[str], overrides: Sequence[ModelOverride] = MODEL_OVERRIDES) -> Schema:
    """Return the provider base schema with every matching model override applied.

    Unknown providers get an empty schema; this never raises.
    """
    schema = BASE_SCHEMAS.get(provider, Schema()) if provider else Schema()
    for override in overrides:
        if override.matches(model):
            schema = override.apply(schema)
    return schema


__all__ = [
    'BASE_SCHEMAS',
    'MODEL_OVERRIDES',
    'ExclusiveGroup',
    'ModelMatch',
    'ModelOverride',
    'ParamSpec',
    'Schema',
    'add_exclusive_group',
    'add_params',
    'get_schema',
    'remove_params',
    'rename_param',
]
