import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from attendance_engine.api.payroll import router as payroll_router
from attendance_engine.core.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s (timezone=%s, workers=%d)", settings.APP_NAME, settings.ORG_TIMEZONE, settings.MAX_WORKERS)

    yield

    logger.info("Shutting down %s.", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description="Reconciles time-clock punches with shift schedules and computes payroll metrics.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(payroll_router, prefix="/api/payroll", tags=["Payroll"])


@app.get("/health", tags=["System"])
async def health_check() -> dict:
    return {"status": "ok"}
