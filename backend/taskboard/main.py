"""Main FastAPI application for the Taskboard board server."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import load_config
from .models.database import close_db, get_db, init_db
from .routers import board_router, reminders_router
from .routers.board import method_not_allowed_handler
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)

# Background tasks
_reminder_task: asyncio.Task | None = None


async def reminder_sweep_task():
    """Background task that sends due reminders and prunes old sent ones."""
    from .services.reminder import ReminderService

    logger.info("Reminder sweep task started")

    while True:
        try:
            config = load_config()
            await asyncio.sleep(config.reminders.check_interval_seconds)

            async for db in get_db():
                service = ReminderService(db)
                result = await service.dispatch_due()
                if result["sent"]:
                    logger.info(f"Sent {result['sent']} due reminders")
                await service.cleanup_sent(config.reminders.retention_hours)
                await db.commit()
                break  # Only need one db session

        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error(f"Reminder sweep error: {e}")
            await asyncio.sleep(10)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global _reminder_task

    # Startup
    config = load_config()
    setup_logging()
    logger.info("Starting Taskboard server...")

    # Initialize database
    await init_db()
    logger.info(f"Database initialized at {config.database.path}")

    logger.info(f"Server: {config.server.host}:{config.server.port}")
    logger.info(f"Debug mode: {config.server.debug}")
    logger.info(f"Email reminders: {'enabled' if config.smtp.enabled else 'disabled'}")

    if config.reminders.sweep_enabled:
        _reminder_task = asyncio.create_task(reminder_sweep_task())

    yield

    # Shutdown
    logger.info("Shutting down Taskboard server...")

    if _reminder_task:
        _reminder_task.cancel()
        try:
            await _reminder_task
        except asyncio.CancelledError:
            pass
        _reminder_task = None

    await close_db()


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    config = load_config()

    app = FastAPI(
        title="Taskboard",
        description="Shared kanban board document store and reminder service",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register API routers
    app.include_router(board_router)
    app.include_router(reminders_router)
    app.add_exception_handler(StarletteHTTPException, method_not_allowed_handler)

    # Health check endpoint
    @app.get("/api/health")
    async def health_check():
        """Health check endpoint for monitoring."""
        return {"status": "healthy", "service": "taskboard"}

    return app


app = create_app()


def run() -> None:
    """Start the server with uvicorn."""
    import uvicorn

    config = load_config()
    uvicorn.run(
        "taskboard.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.debug,
    )


if __name__ == "__main__":
    run()
