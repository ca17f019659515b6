from fastapi import APIRouter, Request

from chatwire.config.log import get_logger

router = APIRouter()
log = get_logger(__name__)


@router.get('/health')
async def health(request: Request):
    dispatcher = getattr(request.app.state, 'dispatcher', None)
    if dispatcher is None:
        return {'status': 'ok'}

    providers = sorted(name for name, provider in dispatcher.providers.items() if provider.endpoint)
    log.debug(f'Health check ok, {len(dispatcher.registry)} queries registered')
    return {'status': 'ok', 'providers': providers, 'queries': len(dispatcher.registry)}
