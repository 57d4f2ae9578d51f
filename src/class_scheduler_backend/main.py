'''

'''
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .database.engine import create_db_engine_and_session_factory, dispose_db_engine, init_db_schema
from .services.cache_service import create_cache_client, close_cache_client
from .common.logger import log
from .common.config import settings
from .api import classes, instructors, rooms

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles application startup and shutdown events.
    """
    # --- On App Startup ---
    log.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} (timezone {settings.TIMEZONE})...")
    create_db_engine_and_session_factory()
    if settings.AUTO_CREATE_SCHEMA or settings.TEST_MODE:
        await init_db_schema()
    create_cache_client()

    yield # --- Application is now running ---

    # --- On App Shutdown ---
    log.info("Application lifespan shutdown...")
    await close_cache_client()
    await dispose_db_engine()


# ---- CREATING THE APP ----
app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# --- Add CORS Middleware ---
origins = [
    # URL of testing frontend
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:5173",
]

# Extend with environment-specific origins
origins.extend(settings.BACKEND_CORS_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],)
# --- End of CORS Middleware ---

@app.get("/")
async def health_check():
    return {"status": "ok", "message": f"{settings.APP_NAME} is running"}

app.include_router(classes.router)
app.include_router(instructors.router)
app.include_router(rooms.room_types_router)
app.include_router(rooms.router)
