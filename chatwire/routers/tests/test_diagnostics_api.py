import pytest
from fastapi.testclient import TestClient

from chatwire.config.models import ConfigModel, LoggingConfig
from chatwire.dispatch.dispatcher import Dispatcher
from chatwire.main import create_app
from chatwire.streaming.metrics import Metrics


class NullTransport:
    def __init__(self):
        self.readers = []

    def run(self, command, out_reader, err_reader, on_exit):
        self.readers.append((out_reader, on_exit))


@pytest.fixture
def transport():
    return NullTransport()


@pytest.fixture
def dispatcher(transport):
    config = ConfigModel(api_keys={'openai': 'sk-test'}, logging=LoggingConfig(console_enabled=False))
    return Dispatcher(config, transport=transport)


@pytest.fixture
def client(dispatcher):
    return TestClient(create_app(dispatcher.config, dispatcher))


def test_health(client):
    response = client.get('/api/health')
    assert response.status_code == 200
    body = response.json()
    assert body['status'] == 'ok'
    assert body['providers'] == ['anthropic', 'googleai', 'openai']
    assert body['queries'] == 0


def test_metrics_snapshot(client, dispatcher):
    assert client.get('/metrics').json() == {'input_tokens': None, 'cache_creation_tokens': None, 'cache_read_tokens': None, 'output_tokens': None}

    dispatcher.metrics.set(Metrics(input_tokens=10, cache_creation_tokens=0, cache_read_tokens=4, output_tokens=3))
    assert client.get('/metrics').json()['cache_read_tokens'] == 4


def test_query_lookup(client, dispatcher, transport):
    query_id = dispatcher.query(None, 'openai', {'model': 'gpt-4.1', 'messages': []}, lambda qid, text: None)
    out_reader, on_exit = transport.readers[0]
    out_reader(b'data: {"choices":[{"delta":{"content":"Hi"}}]}\n')
    out_reader(None)
    on_exit(0)

    response = client.get(f'/queries/{query_id}')

    assert response.status_code == 200
    body = response.json()
    assert body['id'] == query_id
    assert body['provider'] == 'openai'
    assert body['state'] == 'done'
    assert body['response'] == 'Hi'
    assert body['exit_code'] == 0
    assert client.get('/queries').json() == {'count': 1, 'queries': [query_id]}


def test_unknown_query(client):
    response = client.get('/queries/does-not-exist')
    assert response.status_code == 404
    assert response.json()['error']['type'] == 'not_found_error'
