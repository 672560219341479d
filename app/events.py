import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.db import init_db as init_db_module
from app.db import session as session_module

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup")
    # Raises DatabaseUnavailable and aborts startup when the database is unreachable.
    await session_module.verify_connection()
    await init_db_module.init_db()
    yield
    logger.info("Application shutdown")
    await session_module.engine.dispose()
