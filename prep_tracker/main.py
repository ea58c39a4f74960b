"""Main FastAPI application for the prep tracker backend."""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from prep_tracker import __version__
from prep_tracker.config import ENVIRONMENT
from prep_tracker.db.init import init_db
from prep_tracker.errors import PrepTrackerError, create_error_response
from prep_tracker.routers import occurrences, questions, stats, tasks
from prep_tracker.utils.logger import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create database tables on startup."""
    init_db()
    logger.info("Application startup complete", environment=ENVIRONMENT)
    yield
    logger.info("Application shutdown")


# Create FastAPI application
app = FastAPI(
    title="Prep Tracker API",
    description="Recurring interview-prep tasks, daily occurrences and spaced-repetition review",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(PrepTrackerError)
async def prep_tracker_error_handler(request: Request, exc: PrepTrackerError):
    """Render service errors as the tagged failure envelope."""
    logger.warning(
        "Request failed",
        path=request.url.path,
        code=exc.code,
        error_message=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=create_error_response(exc))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content=create_error_response(PrepTrackerError("Internal server error")),
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


app.include_router(tasks.router, prefix="/api")  # /api/tasks
app.include_router(occurrences.router, prefix="/api")  # /api/occurrences
app.include_router(questions.router, prefix="/api")  # /api/questions
app.include_router(stats.router, prefix="/api")  # /api/stats


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "prep_tracker.main:app",
        host="0.0.0.0",
        port=8000,
        reload=ENVIRONMENT == "development",
    )
