import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

import dutyroster.models  # noqa: F401: register all models with Base.metadata
from dutyroster.api.routes.availability import router as availability_router
from dutyroster.api.routes.duties import router as duties_router
from dutyroster.api.routes.places import router as places_router
from dutyroster.api.routes.users import router as users_router
from dutyroster.config import get_settings
from dutyroster.database import close_db, init_db
from dutyroster.schemas.system import StatusResponse


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    await init_db()
    yield
    await close_db()


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("dutyroster").setLevel(settings.log_level.upper())
    app = FastAPI(
        title="Duty Roster",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.include_router(duties_router)
    app.include_router(availability_router)
    app.include_router(places_router)
    app.include_router(users_router)

    @app.get("/api/system/status", response_model=StatusResponse)
    async def system_status() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
