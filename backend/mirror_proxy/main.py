import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from mirror_proxy.api.routers import files as files_router
from mirror_proxy.core.config import get_settings
from mirror_proxy.services.auth import AuthConfig, Authenticator
from mirror_proxy.services.mirror import MirrorService
from mirror_proxy.services.storage import get_storage_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    app.state.authenticator = Authenticator(AuthConfig.from_settings(settings))

    async with httpx.AsyncClient(follow_redirects=True, timeout=None) as http_client:
        app.state.mirror_service = MirrorService(
            storage=get_storage_service(),
            http_client=http_client,
            mirror_domain=settings.mirror_domain,
        )
        yield


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(
        debug=settings.debug,
        title="Banana Mirror Proxy",
        lifespan=lifespan,
    )

    app.include_router(files_router.router)

    return app


app = create_app()
