import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from . import models  # noqa: F401 - register models with Base
from .config import STRIPE_WEBHOOK_SECRET
from .database import Base, engine
from .domain.billing.router import router as webhook_admin_router
from .domain.billing.router import webhooks_router as stripe_webhooks_router
from .domain.bookings.router import router as bookings_router
from .errors import register_exception_handlers

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("stripe").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Bookings API starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
    except SQLAlchemyError as e:
        # Several uvicorn workers may race on CREATE TABLE
        if "already exists" not in str(e) and "duplicate key" not in str(e):
            logger.error(f"❌ Failed to create database tables: {e}")
            raise
    logger.info(f"✅ Database ready ({engine.dialect.name})")
    if not STRIPE_WEBHOOK_SECRET:
        logger.warning("⚠️ STRIPE_WEBHOOK_SECRET not set - the Stripe webhook answers 501")

    yield
    logger.info("Bookings API shutting down...")


app = FastAPI(title="CleanMarket Bookings API", version="1.0.0", lifespan=lifespan)

register_exception_handlers(app)


# CORS Configuration
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(stripe_webhooks_router)
app.include_router(bookings_router)
app.include_router(webhook_admin_router)


@app.get("/")
def root():
    return {"message": "CleanMarket Bookings API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
