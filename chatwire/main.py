import logging
from pprint import pprint
from typing import Optional

from fastapi import FastAPI

from chatwire.config import ConfigurationService, setup_config
from chatwire.config.log import configure_structlog
from chatwire.config.models import ConfigModel
from chatwire.dispatch.dispatcher import Dispatcher
from chatwire.routers.diagnostics import router as diagnostics_router
from chatwire.routers.health import router as health_router


def create_app(config: Optional[ConfigModel] = None, dispatcher: Optional[Dispatcher] = None) -> FastAPI:
    """Application factory for the diagnostics API.

    Args:
        config: Optional configuration. If None, loads it from the default locations.
        dispatcher: Optional dispatcher to expose. If None, one is built from the config.

    Returns:
        Configured FastAPI application instance.
    """
    if config is None:
        setup_config()
        config = ConfigurationService().get_config()

    configure_structlog(config.logging)

    if dispatcher is None:
        dispatcher = Dispatcher(config)

    app = FastAPI(title='chatwire', version='0.1.0')
    app.state.config = config
    app.state.dispatcher = dispatcher

    # Keep library loggers quiet
    for k in logging.root.manager.loggerDict.keys():
        if any(k.startswith(v) for v in {'fastapi', 'uvicorn', 'httpx', 'httpcore', 'hpack'}):
            logging.getLogger(k).setLevel('INFO')

    app.include_router(health_router, prefix='/api', tags=['health'])
    app.include_router(diagnostics_router, tags=['diagnostics'])

    if config.dev:
        pprint(config.model_dump(exclude={'api_keys'}))

    return app


if __name__ == '__main__':
    import uvicorn

    config = ConfigurationService().get_config()
    uvicorn.run('chatwire.main:create_app', factory=True, host=config.host, port=config.port, reload=config.dev)
