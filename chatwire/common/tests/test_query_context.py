import asyncio

import pytest

from chatwire.common.exceptions import DispatchException, MissingCredentialException, TransportException
from chatwire.common.utils import generate_query_id
from chatwire.common.vars import bound_query_id, get_query_id


def test_generate_query_id_is_unique_hex():
    ids = {generate_query_id() for _ in range(100)}
    assert len(ids) == 100
    assert all(len(query_id) == 32 for query_id in ids)


def test_bound_query_id_nests_and_resets():
    assert get_query_id() is None
    with bound_query_id('outer'):
        assert get_query_id() == 'outer'
        with bound_query_id('inner'):
            assert get_query_id() == 'inner'
        assert get_query_id() == 'outer'
    assert get_query_id() is None


@pytest.mark.asyncio
async def test_tasks_inherit_bound_query_id():
    async def read():
        return get_query_id()

    with bound_query_id('task-query'):
        task = asyncio.get_running_loop().create_task(read())
    assert await task == 'task-query'


def test_exception_hierarchy():
    error = TransportException('boom', provider='openai', exit_code=7, query_id='q')
    assert isinstance(error, DispatchException)
    assert (error.message, error.provider, error.exit_code, error.query_id) == ('boom', 'openai', 7, 'q')
    assert issubclass(MissingCredentialException, DispatchException)
    assert str(error) == 'boom'
