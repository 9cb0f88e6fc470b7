import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dvf_estimator.api.router import api_router
from dvf_estimator.config import settings


def _setup_logging() -> None:
    """Configure application logging."""
    log_format = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"
    date_format = "%H:%M:%S"
    level = logging.DEBUG if settings.debug else logging.INFO

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt=date_format,
        stream=sys.stderr,
        force=True,
    )

    # third-party libraries: WARNING and above only
    logging.getLogger().setLevel(logging.WARNING)
    logging.getLogger("dvf_estimator").setLevel(level)

    # one line per HTTP call otherwise
    logging.getLogger("httpx").setLevel(logging.WARNING)


_setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    if settings.transaction_source != "database":
        yield
        return

    from dvf_estimator.database import Base, engine
    from dvf_estimator.models import sale  # noqa: F401  registers ventes_dvf

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


app = FastAPI(
    title="DVF property estimator",
    description="Estimates French residential property values from comparable DVF sales.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")
