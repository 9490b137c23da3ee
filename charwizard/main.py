from contextlib import asynccontextmanager

from fastapi import FastAPI

from charwizard.config import settings
from charwizard.db.bootstrap import init_db
from charwizard.modules.characters.router import router as characters_router
from charwizard.modules.creation.router import router as creation_router
from charwizard.modules.telemetry.router import router as telemetry_router
from charwizard.observability import configure_logging, install_request_id_middleware


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    init_db()
    yield


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Character Creation Wizard", lifespan=_lifespan)
    install_request_id_middleware(app)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/v1/health")
    async def api_health() -> dict[str, str]:
        return {"status": "ok", "env": settings.env}

    app.include_router(creation_router)
    app.include_router(characters_router)
    app.include_router(telemetry_router)
    return app


app = create_app()
