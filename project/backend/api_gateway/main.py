"""
FastAPI application.

Wires the video routes, CORS and the process lifecycle. On startup JSON
logging is configured and the registry is created and swept periodically;
on shutdown every tracked FFmpeg process is terminated (SIGINT/SIGTERM
are delivered by the ASGI server).
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from shared.config import settings
from shared.logging import configure_logging, get_logger, shutdown_logging
from modules.slideshow.lifecycle import ProcessLifecycleManager
from modules.slideshow.utils import resolve_ffmpeg_binary
from api_gateway.routes.videos import router as videos_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    lifecycle = ProcessLifecycleManager()
    app.state.lifecycle = lifecycle
    lifecycle.start_sweeper(settings.process_sweep_interval)
    logger.info(f"Using ffmpeg path: {resolve_ffmpeg_binary()}")
    try:
        yield
    finally:
        logger.info("Shutting down gracefully...")
        await lifecycle.stop_sweeper()
        lifecycle.terminate_all()
        shutdown_logging()


app = FastAPI(
    title="Slideshow Composer API",
    description="Turns uploaded images into a video, optionally with background music",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(videos_router)


@app.get("/")
def root():
    return {"status": "ok", "message": "Slideshow composer is running"}
