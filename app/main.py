from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core import db
from app.core.cache import close_cache, init_cache
from app.core.config import settings
from app.core.logging import setup_logging
from app.core.middleware import StructlogMiddleware
from app.modules.alerts import router as alerts_router
from app.modules.alerts.config import validate_alert_settings
from app.modules.alerts.service import alert_pipeline, rate_limiter
from app.modules.patients import router as patients_router
from app.modules.vitals import router as vitals_router

setup_logging()
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Misconfigured alerting must stop the service before it accepts readings.
    validate_alert_settings(settings)

    mongo_client = await db.init_db()
    # Redis cache is optional; init_cache() returns None when disabled/unavailable.
    cache_client = await init_cache()
    app.state.mongo_client = mongo_client
    app.state.cache_client = cache_client
    log.info(
        "alerting ready",
        ranges=alert_pipeline.evaluator.ranges.as_dict(),
        email=alert_pipeline.dispatcher.email_active,
        cooldown_seconds=rate_limiter.cooldown.total_seconds(),
    )

    yield

    mongo_client.close()
    await close_cache()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    ## VitalWatch API

    * **Vitals**: record readings extracted from bedside monitors and read them back
    * **Alerts**: active out-of-range alerts per patient, live over SSE or WebSocket
    * **Patients**: the subjects readings and alerts refer to
    """,
    version="0.1.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(StructlogMiddleware)

app.include_router(
    vitals_router.router, prefix=f"{settings.API_V1_STR}/vitals", tags=["vitals"]
)
app.include_router(
    alerts_router.router, prefix=f"{settings.API_V1_STR}/alerts", tags=["alerts"]
)
app.include_router(
    patients_router.router, prefix=f"{settings.API_V1_STR}/patients", tags=["patients"]
)


@app.get("/health")
def health_check() -> dict[str, str]:
    return {"status": "ok"}
