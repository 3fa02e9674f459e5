import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from plant_quiz.logging_config import setup_logging
from plant_quiz.routers import quiz as quiz_router
from plant_quiz.settings import get_settings
from quiz_engine.models import ConfigurationError, SessionStateError

# Configure logging before anything else logs
setup_logging(get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Plant Quiz - Form Engine API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Include Routers ---
app.include_router(quiz_router.router, prefix="/api/v1", tags=["quiz"])


# --- Exception Handlers ---
# Raised outside the route bodies, e.g. while loading the engine in a dependency.

@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Configuration error on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=422, content={"detail": {"message": exc.message, "details": exc.details}})


@app.exception_handler(SessionStateError)
async def session_state_error_handler(request: Request, exc: SessionStateError):
    logger.warning(f"Session state error on {request.url.path}: {exc}")
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.get("/health", tags=["Health Check"])
async def health():
    """Liveness check."""
    return {"status": "ok", "message": "Plant quiz engine is running."}


if __name__ == "__main__":
    import uvicorn
    # Better to run with `uvicorn main:app --reload` from the project root directory
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
