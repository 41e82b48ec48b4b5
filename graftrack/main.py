# path: graftrack-api/graftrack/main.py

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from loguru import logger

from graftrack.api.routes.locations import router as locations_router
from graftrack.api.routes.objects import router as objects_router
from graftrack.api.routes.prospects import router as prospects_router
from graftrack.config import Settings, settings
from graftrack.database import create_session_factory, init_db
from graftrack.services.entity_store import EntityStore
from graftrack.services.object_storage import ObjectStorageService


def create_app(config: Optional[Settings] = None) -> FastAPI:
    cfg = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine, session_factory = create_session_factory(cfg.database_url, echo=cfg.debug)
        await init_db(engine)
        objects = ObjectStorageService(cfg.upload_bucket_url, cfg.upload_signing_secret, cfg.upload_url_ttl_s)
        app.state.objects = objects
        app.state.store = EntityStore(session_factory, objects)
        logger.info(f"{cfg.app_name} ready ({cfg.database_url})")
        yield
        await engine.dispose()

    app = FastAPI(title=cfg.app_name, lifespan=lifespan)
    app.include_router(locations_router)
    app.include_router(prospects_router)
    app.include_router(objects_router)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "name": cfg.app_name}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("graftrack.main:app", host=settings.host, port=settings.port)
