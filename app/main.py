from datetime import datetime, timezone
from pathlib import Path
import time
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import logging

# Load environment variables FIRST before anything else
from dotenv import load_dotenv
project_root = Path(__file__).resolve().parent.parent
env_local = project_root / ".env.local"
env_file = project_root / ".env"
if env_local.exists():
    load_dotenv(env_local)
elif env_file.exists():
    load_dotenv(env_file)

# Setup logging AFTER env vars loaded
from app.logging_config import setup_logging
setup_logging()

from app.config import get_settings
from app.research_routes import router as research_router

settings = get_settings()
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    description="Thesis Research Lab - From investment hypothesis to ranked verdicts",
    version="0.1.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests with timing."""
    start_time = time.time()

    # Skip logging for health checks and docs
    path = request.url.path
    skip_paths = ["/health", "/docs", "/openapi.json", "/favicon.ico"]

    if any(path.startswith(p) for p in skip_paths):
        return await call_next(request)

    logger.info(f"[API] {request.method} {path}")

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000
    status = response.status_code

    if status >= 400:
        logger.warning(f"[API] {request.method} {path} -> {status} ({duration_ms:.0f}ms)")
    else:
        logger.info(f"[API] {request.method} {path} -> {status} ({duration_ms:.0f}ms)")

    return response


# Include routes
app.include_router(research_router)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "status": "running",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "deep_research": bool(settings.gemini_key) and settings.enable_deep_research,
        "debate": settings.enable_debate,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
