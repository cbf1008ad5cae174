"""FastAPI main application."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import settings
from .db import DatabaseConnection, DuckDBPersistence
from .utils.logger import init_app_logger
from .api.v1 import conversations, sessions


# Initialize logger
logger = init_app_logger(settings)

# Global database connection
db_conn: DatabaseConnection = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    Args:
        app: FastAPI application instance
    """
    # Startup
    logger.info("=" * 70)
    logger.info("Starting Tutor Core...")
    logger.info("=" * 70)

    logger.info("")
    logger.info("📡 Server Configuration:")
    logger.info(f"  Host: {settings.host}")
    logger.info(f"  Port: {settings.port}")
    logger.info(f"  Debug: {settings.debug}")
    logger.info(f"  Log Level: {settings.log_level}")
    logger.info(f"  Log File: {settings.log_file}")

    logger.info("")
    logger.info("⚙️  Orchestration Configuration:")
    logger.info(f"  Use Documents: {settings.use_documents}")
    logger.info(f"  Auto-play Synthesis: {settings.auto_play_synthesis}")
    logger.info(f"  Voice: {settings.voice.value}")
    logger.info(f"  Max Clip: {settings.max_clip_seconds}s / {settings.max_clip_bytes} bytes")
    logger.info(f"  Single Open Session: {settings.single_open_session}")
    logger.info(f"  Synthesis Cache: {settings.synthesis_cache_size} replies")

    logger.info("")
    logger.info("🔊 Speech Services:")
    logger.info(f"  API Base: {settings.openai_api_base}")
    logger.info(f"  Transcription Model: {settings.transcription_model}")
    logger.info(f"  Synthesis Model: {settings.synthesis_model}")
    if settings.openai_api_key:
        key = settings.openai_api_key
        masked_key = key[:8] + "..." + key[-4:] if len(key) > 12 else "***"
        logger.info(f"  API Key: {masked_key}")
    else:
        logger.info("  API Key: Not set")

    # Initialize database
    logger.info("")
    logger.info("🗄️  Initializing Database...")
    global db_conn
    db_conn = DatabaseConnection(settings.database_path)
    persistence = DuckDBPersistence(db_conn)

    # Set persistence in API modules
    conversations.persistence = persistence
    sessions.persistence = persistence

    logger.info("")
    logger.info("=" * 70)
    logger.info("✅ Tutor Core started successfully!")
    logger.info(f"📍 Access at: http://{settings.host}:{settings.port}")
    logger.info(f"📚 API Docs: http://{settings.host}:{settings.port}/docs")
    logger.info("=" * 70)

    yield

    # Shutdown
    logger.info("Shutting down Tutor Core...")
    if db_conn:
        db_conn.close()
    logger.info("✅ Tutor Core shut down successfully")


# Create FastAPI application
app = FastAPI(
    title="Tutor Core",
    description="Conversation and session orchestration for the tutoring assistant",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(conversations.router)
app.include_router(sessions.router)


@app.get("/health")
async def health():
    """
    Simple health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": "Tutor Core",
        "version": "1.0.0"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tutorcore.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
