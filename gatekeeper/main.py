from contextlib import asynccontextmanager

from fastapi import FastAPI

from gatekeeper.coordination import Coordination, build_coordination
from gatekeeper.infrastructure.db.pool import close_pool, open_pool
from gatekeeper.infrastructure.redis_cache.pool import close_redis, get_redis
from gatekeeper.logging import setup_logging
from gatekeeper.presentation.api import api
from gatekeeper.settings import get_settings

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    await open_pool()
    get_redis()

    coordination: Coordination = app.state.coordination
    coordination.sweeper.start()

    try:
        yield
    finally:
        # shutdown
        await coordination.sweeper.stop()
        await close_redis()
        await close_pool()


def create_app(coordination: Coordination | None = None) -> FastAPI:
    setup_logging(settings.log_level)
    app = FastAPI(title="Gatekeeper API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    # in-process state must exist before the first request, lifespan or not
    app.state.coordination = coordination or build_coordination(settings)
    app.include_router(api)
    return app


app = create_app()
