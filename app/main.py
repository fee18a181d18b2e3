import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from app.config import settings
from app.db import archive_items, ensure_indexes
from app.errors import ArchiveError
from app.routers import admin, archive, entry, health, search

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_indexes(archive_items)
    yield


app = FastAPI(title="Chilahati Archive API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ArchiveError)
async def archive_error_handler(request: Request, exc: ArchiveError):
    return JSONResponse(status_code=exc.status_code,
                        content={"detail": exc.message, "error": exc.error})


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.error("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Server Error"})


# routers
app.include_router(health.router)       # GET /
app.include_router(archive.router)      # /archive/*
app.include_router(search.router)       # /search
app.include_router(entry.router)        # /entry/{slug}
app.include_router(admin.router)        # /admin/items/*
