from types import MappingProxyType

import pytest

from chatwire.params.schema import (
    BASE_SCHEMAS,
    ModelMatch,
    ModelOverride,
    ParamSpec,
    Schema,
    add_exclusive_group,
    add_params,
    get_schema,
    remove_params,
    rename_param,
)


class TestParamSpec:
    @pytest.mark.parametrize('value,expected', [(-1, 0), (0, 0), (1.5, 1.5), (3, 2), ('hot', 'hot'), (True, True)])
    def test_clamp(self, value, expected):
        assert ParamSpec('temperature', min=0, max=2).clamp(value) == expected

    def test_unbounded(self):
        spec = ParamSpec('top_k', default=100)
        assert spec.clamp(10_000) == 10_000
        assert spec.in_range(-5)

    def test_wire_name(self):
        assert ParamSpec('top_p', api_name='topP').wire_name == 'topP'
        assert ParamSpec('top_p').wire_name == 'top_p'

    @pytest.mark.parametrize('kwargs', [{'min': 2, 'max': 1}, {'min': 0, 'max': 1, 'default': 5}])
    def test_invalid_construction(self, kwargs):
        with pytest.raises(ValueError):
            ParamSpec('x', **kwargs)


class TestTransforms:
    def setup_method(self):
        self.base = Schema.of(ParamSpec('temperature', min=0, max=2), ParamSpec('max_tokens', default=4096))

    def test_transforms_do_not_mutate(self):
        removed = remove_params('temperature')(self.base)
        assert 'temperature' not in removed.params
        assert 'temperature' in self.base.params
        assert isinstance(self.base.params, MappingProxyType)

    def test_add_replaces(self):
        schema = add_params(ParamSpec('max_tokens', default=1))(self.base)
        assert schema.params['max_tokens'].default == 1
        assert self.base.params['max_tokens'].default == 4096

    def test_rename(self):
        schema = rename_param('max_tokens', 'max_completion_tokens')(self.base)
        assert schema.params['max_tokens'].wire_name == 'max_completion_tokens'
        assert schema.params['max_tokens'].default == 4096

    def test_rename_missing_is_noop(self):
        assert rename_param('nope', 'other')(self.base) is self.base

    def test_exclusive_group(self):
        schema = add_exclusive_group('temperature', 'top_p', at_most_one=True)(self.base)
        assert schema.exclusive_groups[0].members == ('temperature', 'top_p')
        assert self.base.exclusive_groups == ()

    def test_idempotent_removal(self):
        once = remove_params('temperature')(self.base)
        twice = remove_params('temperature')(once)
        assert dict(once.params) == dict(twice.params)


class TestModelMatch:
    @pytest.mark.parametrize(
        'matcher,model,expected',
        [
            (ModelMatch.exact('gpt-5'), 'gpt-5', True),
            (ModelMatch.exact('gpt-5'), 'gpt-5-mini', False),
            (ModelMatch.prefix('o1'), 'o1-preview', True),
            (ModelMatch.prefix('o1'), 'gpt-o1', False),
            (ModelMatch.contains('sonnet'), 'claude-sonnet-4-6', True),
            (ModelMatch.contains('sonnet'), None, False),
        ],
    )
    def test_matches(self, matcher, model, expected):
        assert matcher.matches(model) is expected


class TestGetSchema:
    def test_unknown_provider_is_empty(self):
        assert dict(get_schema('nobody', 'x').params) == {}
        assert dict(get_schema(None, None).params) == {}

    def test_base_schema(self):
        schema = get_schema('googleai', 'gemini-2.5-pro')
        assert schema.params['max_tokens'].wire_name == 'maxOutputTokens'
        assert schema.params['top_k'].default == 100

    @pytest.mark.parametrize('model', ['o1', 'o3-mini'])
    def test_reasoning_override(self, model):
        schema = get_schema('openai', model)
        assert set(schema.params) == {'reasoning_effort'}
        assert schema.params['reasoning_effort'].default == 'minimal'

    def test_search_preview(self):
        assert dict(get_schema('openai', 'gpt-4o-search-preview').params) == {}

    def test_gpt5(self):
        schema = get_schema('openai', 'gpt-5')
        assert set(schema.params) == {'max_tokens', 'reasoning_effort'}
        assert schema.params['max_tokens'].wire_name == 'max_completion_tokens'

    def test_gpt5_adds_completion_tokens_without_base_param(self):
        schema = get_schema('nobody', 'gpt-5-mini')
        assert schema.params['max_tokens'].wire_name == 'max_completion_tokens'
        assert schema.params['max_tokens'].default == 4096

    def test_sonnet_group(self):
        schema = get_schema('anthropic', 'claude-sonnet-4-6')
        assert schema.exclusive_groups[0].at_most_one

    def test_overrides_apply_in_order(self):
        overrides = (
            ModelOverride(matchers=(ModelMatch.prefix('m'),), transforms=(add_params(ParamSpec('seed', default=1)),)),
            ModelOverride(matchers=(ModelMatch.contains('model'),), transforms=(remove_params('seed'),)),
        )
        assert 'seed' not in get_schema('openai', 'my-model', overrides).params
        assert get_schema('openai', 'mine', overrides).params['seed'].default == 1

    def test_base_schemas_are_immutable(self):
        with pytest.raises(TypeError):
            BASE_SCHEMAS['openai'].params['temperature'] = ParamSpec('temperature')
