"""Newscast - FastAPI application serving the daily audio files."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from newscast.config import settings
from newscast.routers import audio

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create app
app = FastAPI(
    title=settings.app_name,
    description="Daily audio news with explainers",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (audio is fetched cross-origin by the player)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "HEAD", "OPTIONS"],
    allow_headers=["Range", "Accept-Encoding"],
)

app.include_router(audio.router)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "docs": "/docs",
        "endpoints": {
            "audio": "/api/audio?filename=... - Stream an audio file",
            "metadata": "/api/audio/metadata?filename=... - Duration and title",
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
