"""FastAPI application entry point for the project request service."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from request_desk.config import settings
from request_desk.database import Base, SessionLocal, engine
from request_desk.routers import payments, requests, users
import request_desk.models  # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Project Requests",
    description="Request lifecycle, advance/full payments and progress tracking for catalog and custom projects",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(requests.router, prefix="/api/requests", tags=["Requests"])
app.include_router(payments.router, prefix="/api/payments", tags=["Payments"])


@app.on_event("startup")
def on_startup():
    """SQLite dev databases are created in place; anything else goes through alembic."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    if not settings.RAZORPAY_KEY_ID or not settings.SMTP_HOST:
        logger.warning("Payment gateway or SMTP relay not configured; those features are degraded")


@app.get("/api/health")
def health_check():
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        logger.exception("Health check could not reach the database")
        database = "unavailable"
    finally:
        db.close()
    return {"status": "ok" if database == "ok" else "degraded", "database": database}
