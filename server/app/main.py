import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import load_settings
from .database import close_pool, init_db, init_pool
from .offboarding.routes import offboarding_router

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    settings = load_settings()
    print(f"[Offboarding] Starting server on port {settings.port}")
    print(f"[Offboarding] Equipment return window: {settings.overdue_threshold_days} days")
    if not settings.hr_notification_emails:
        print("[Offboarding] WARNING: HR_NOTIFICATION_EMAILS not set, overdue alerts will be skipped")

    # Initialize database
    await init_pool(settings.database_url)
    await init_db()

    yield

    # Cleanup
    await close_pool()
    print("[Offboarding] Server shutdown complete")


app = FastAPI(
    title="Offboarding API",
    description="Termination lifecycle tracking: IT checklist, equipment return and overdue follow-up",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS - allow frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(offboarding_router, prefix="/api")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "offboarding"}
