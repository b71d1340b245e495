from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docflow import __version__
from docflow.api.routers import documents, health, notifications
from docflow.core.config import get_settings
from docflow.core.logger import setup_logger
from docflow.db.session import init_db

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = setup_logger(
        level=settings.log_level,
        log_dir=settings.log_dir if settings.log_to_file else None,
    )
    init_db()
    logger.info("%s %s started", settings.app_name, __version__)
    yield


app = FastAPI(
    title=settings.app_name,
    description="University document request approval workflow",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(documents.router, prefix="/api")
app.include_router(notifications.router, prefix="/api")
app.include_router(health.router)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs" if settings.debug else None,
    }
