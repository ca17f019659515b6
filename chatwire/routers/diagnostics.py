"""Read-only views over the dispatcher: last metrics snapshot and registered queries."""

from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse

from chatwire.config.log import get_logger
from chatwire.dispatch.dispatcher import Dispatcher

router = APIRouter()
log = get_logger(__name__)


def _dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


@router.get('/metrics', response_class=ORJSONResponse)
async def metrics(request: Request):
    return ORJSONResponse(_dispatcher(request).get_metrics().to_dict())


@router.get('/queries', response_class=ORJSONResponse)
async def list_queries(request: Request):
    registry = _dispatcher(request).registry
    return ORJSONResponse({'count': len(registry), 'queries': [entry.id for entry in registry]})


@router.get('/queries/{query_id}', response_class=ORJSONResponse)
async def get_query(query_id: str, request: Request):
    dispatcher = _dispatcher(request)
    if query_id not in dispatcher.registry:
        log.debug(f'Query {query_id} not found')
        return ORJSONResponse(status_code=404, content={'type': 'error', 'error': {'type': 'not_found_error', 'message': f'query {query_id} not found'}})
    return ORJSONResponse(dispatcher.get_query(query_id).summary())
