import asyncio
from unittest.mock import MagicMock

import orjson
import pytest

from chatwire.config.models import ConfigModel, RawModeConfig
from chatwire.dispatch.dispatcher import Dispatcher, once
from chatwire.dispatch.vault import InMemoryVault
from chatwire.streaming.metrics import Metrics


class FakeTransport:
    """Records commands; the test drives the readers."""

    def __init__(self):
        self.calls = []

    def run(self, command, out_reader, err_reader, on_exit):
        self.calls.append({'command': command, 'out': out_reader, 'err': err_reader, 'exit': on_exit})

    def finish(self, index=0, chunks=(), code=0):
        call = self.calls[index]
        for chunk in chunks:
            call['out'](chunk)
        call['out'](None)
        call['exit'](code)


class DeferredVault(InMemoryVault):
    """Holds callbacks until released, like a secret resolved by a background command."""

    def __init__(self, secrets=None):
        super().__init__(secrets)
        self.pending = []

    def run_with_secret(self, name, callback):
        if self.get_secret(name) is None:
            return False
        self.pending.append(callback)
        return True


@pytest.fixture
def config(tmp_path):
    return ConfigModel(api_keys={'openai': 'sk-test', 'anthropic': 'ant-test'}, dump_dir=str(tmp_path / 'dumps'))


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def dispatcher(config, transport):
    return Dispatcher(config, transport=transport)


class Handlers:
    def __init__(self):
        self.on_delta = MagicMock()
        self.on_exit = MagicMock()
        self.on_complete = MagicMock()

    def deltas(self):
        return [call.args[1] for call in self.on_delta.call_args_list]


class TestDispatcherQuery:
    def setup_method(self):
        self.handlers = Handlers()

    def query(self, dispatcher, provider='openai', payload=None):
        payload = payload or {'model': 'gpt-4.1', 'stream': True, 'messages': [{'role': 'user', 'content': 'Hi'}]}
        return dispatcher.query('buffer-1', provider, payload, self.handlers.on_delta, self.handlers.on_exit, self.handlers.on_complete)

    def test_non_callable_handler(self, dispatcher, transport):
        assert dispatcher.query(None, 'openai', {}, 'not a function') is None
        assert len(dispatcher.registry) == 0
        assert transport.calls == []

    def test_full_exchange(self, dispatcher, transport):
        query_id = self.query(dispatcher)

        entry = dispatcher.get_query(query_id)
        assert entry.provider == 'openai'
        assert entry.context == 'buffer-1'

        command = transport.calls[0]['command']
        assert command.url == 'https://api.openai.com/v1/chat/completions'
        assert command.headers['Authorization'] == 'Bearer sk-test'
        assert orjson.loads(command.body)['model'] == 'gpt-4.1'

        transport.finish(
            chunks=[
                b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\ndata: {"choices":[{"delta":{"content":"lo"}}]}\n\n',
                b'data: {"choices":[],"usage":{"prompt_tokens":5,"completion_tokens":2}}\n\ndata: [DONE]\n\n',
            ]
        )

        assert self.handlers.deltas() == ['Hel', 'lo']
        self.handlers.on_exit.assert_called_once_with(query_id)
        self.handlers.on_complete.assert_called_once_with('Hello')
        assert entry.exit_code == 0
        assert entry.error is None
        assert dispatcher.get_metrics() == Metrics(input_tokens=5, cache_creation_tokens=0, cache_read_tokens=0, output_tokens=2)

    def test_get_metrics_returns_copy(self, dispatcher):
        snapshot = dispatcher.get_metrics()
        snapshot.input_tokens = 1234
        assert dispatcher.get_metrics().input_tokens is None

    def test_missing_secret_finishes_exchange(self, dispatcher, transport):
        query_id = self.query(dispatcher, provider='googleai', payload={'model': 'gemini-2.5-pro'})

        assert transport.calls == []
        self.handlers.on_delta.assert_not_called()
        self.handlers.on_exit.assert_called_once_with(query_id)
        self.handlers.on_complete.assert_called_once_with('')
        assert 'not available' in dispatcher.get_query(query_id).error

    def test_unknown_provider_finishes_exchange(self, config, transport):
        config.api_keys['mystery'] = 'key'
        dispatcher = Dispatcher(config, transport=transport)

        query_id = self.query(dispatcher, provider='mystery')

        assert transport.calls == []
        self.handlers.on_exit.assert_called_once_with(query_id)
        assert 'No endpoint' in dispatcher.get_query(query_id).error

    def test_deferred_secret(self, config, transport):
        vault = DeferredVault(config.api_keys)
        dispatcher = Dispatcher(config, vault=vault, transport=transport)

        query_id = self.query(dispatcher)
        assert transport.calls == []
        assert query_id in dispatcher.registry

        vault.pending[0]()
        vault.pending[0]()

        assert len(transport.calls) == 1

    def test_evicted_before_send(self, config, transport):
        vault = DeferredVault(config.api_keys)
        dispatcher = Dispatcher(config, vault=vault, transport=transport)

        query_id = self.query(dispatcher)
        dispatcher.registry.remove_query(query_id)
        vault.pending[0]()

        assert transport.calls == []

    def test_evicted_exchange_stops_receiving(self, dispatcher, transport):
        query_id = self.query(dispatcher)
        dispatcher.registry.remove_query(query_id)

        transport.finish(chunks=[b'data: {"choices":[{"delta":{"content":"x"}}]}\n'])

        self.handlers.on_delta.assert_not_called()
        self.handlers.on_exit.assert_not_called()

    def test_transport_failure_recorded(self, dispatcher, transport):
        query_id = self.query(dispatcher)
        call = transport.calls[0]

        call['err']('ConnectError: connection refused')
        call['out'](None)
        call['exit'](1)

        entry = dispatcher.get_query(query_id)
        assert entry.exit_code == 1
        assert entry.error == 'ConnectError: connection refused'
        self.handlers.on_exit.assert_called_once_with(query_id)

    def test_exit_code_recorded_before_on_exit(self, dispatcher, transport):
        seen = []
        self.handlers.on_exit.side_effect = lambda qid: seen.append((dispatcher.get_query(qid).exit_code, dispatcher.get_query(qid).error))
        self.query(dispatcher)

        transport.calls[0]['out'](None)
        self.handlers.on_exit.assert_not_called()

        transport.calls[0]['exit'](1)
        assert seen == [(1, 'transport exited with code 1')]
        self.handlers.on_complete.assert_called_once_with('')

    def test_transport_task_held_on_entry(self, config):
        task = MagicMock(spec=asyncio.Future)
        transport = MagicMock()
        transport.run.return_value = task
        dispatcher = Dispatcher(config, transport=transport)

        query_id = self.query(dispatcher)

        assert dispatcher.get_query(query_id).task is task
        task.add_done_callback.assert_called_once()

    def test_transport_start_failure(self, config):
        transport = MagicMock()
        transport.run.side_effect = RuntimeError('no running event loop')
        dispatcher = Dispatcher(config, transport=transport)

        query_id = self.query(dispatcher)

        assert dispatcher.get_query(query_id).error == 'no running event loop'
        self.handlers.on_complete.assert_called_once_with('')

    def test_concurrent_exchanges_are_isolated(self, dispatcher, transport):
        first = Handlers()
        second = Handlers()
        payload = {'model': 'gpt-4.1', 'messages': []}
        first_id = dispatcher.query(None, 'openai', payload, first.on_delta, on_complete=first.on_complete)
        second_id = dispatcher.query(None, 'openai', payload, second.on_delta, on_complete=second.on_complete)

        assert first_id != second_id
        transport.calls[1]['out'](b'data: {"choices":[{"delta":{"content":"B"}}]}\n')
        transport.calls[0]['out'](b'data: {"choices":[{"delta":{"content":"A"}}]}\n')
        transport.finish(index=0)
        transport.finish(index=1)

        first.on_complete.assert_called_once_with('A')
        second.on_complete.assert_called_once_with('B')

    def test_raw_mode_from_config(self, config, transport):
        config.raw_mode = RawModeConfig(show_raw_response=True)
        dispatcher = Dispatcher(config, transport=transport)

        self.query(dispatcher)
        transport.finish(chunks=[b'data: {"choices":[{"delta":{"content":"x"}}]}\n'])

        assert self.handlers.deltas() == ['```json\ndata: {"choices":[{"delta":{"content":"x"}}]}', '```']

    def test_dumps_written_when_enabled(self, tmp_path, transport):
        dump_dir = tmp_path / 'dumps'
        config = ConfigModel(api_keys={'openai': 'sk'}, dump_requests=True, dump_responses=True, dump_dir=str(dump_dir))
        dispatcher = Dispatcher(config, transport=transport)

        query_id = self.query(dispatcher)
        transport.finish(chunks=[b'data: [DONE]\n'])

        names = sorted(path.name for path in dump_dir.iterdir())
        assert len(names) == 2
        assert names[0].endswith(f'{query_id}_1_request.json')
        assert names[1].endswith(f'{query_id}_2_response.sse')
        assert (dump_dir / names[1]).read_bytes() == b'data: [DONE]\n'


class TestPreparePayload:
    def test_uses_session_flag(self, config, transport):
        config.claude_web_search = False
        dispatcher = Dispatcher(config, transport=transport)
        messages = [{'role': 'user', 'content': 'Hi'}]

        assert 'tools' not in dispatcher.prepare_payload(messages, {'model': 'claude-opus-4'}, 'anthropic')

        dispatcher.session.claude_web_search = True
        assert len(dispatcher.prepare_payload(messages, {'model': 'claude-opus-4'}, 'anthropic')['tools']) == 2


def test_once():
    fn = MagicMock(return_value=7)
    guarded = once(fn)

    assert guarded(1, key='v') == 7
    assert guarded(2) is None
    fn.assert_called_once_with(1, key='v')
