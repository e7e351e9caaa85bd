"""
Theoremz Black API - FastAPI main application.
"""

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError
from rq import Worker
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.cache import TTLCache
from app.core.config import settings
from app.core.db import get_db
from app.core.errors import register_error_handlers
from app.core.queue import _get_redis_connection
from app.routers import account, cron, exams, grades
from app.services.premium_service import build_premium_access_service

app = FastAPI(
    title="Theoremz Black API",
    description="Verifiche, voti e readiness degli studenti Black",
    version="0.1.0",
)

app.include_router(exams.router, prefix="/api")
app.include_router(grades.router, prefix="/api")
app.include_router(account.router, prefix="/api")
app.include_router(cron.router, prefix="/api")

register_error_handlers(app)

# Subscription lookups are memoized per process in an explicit cache owned by the app.
app.state.premium_access = build_premium_access_service(TTLCache())

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # restrict to the site origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": "Theoremz Black API",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
def health():
    """Health check endpoint"""
    return {"status": "ok"}


@app.get("/health/db")
def health_db(db: Session = Depends(get_db)):
    """Database health check endpoint"""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=503,
            detail={
                "status": "error",
                "database": "unavailable",
                "error": str(exc),
            },
        ) from exc

    return {"status": "ok", "db": "ok"}


@app.get("/health/redis")
def health_redis():
    """Redis health check endpoint (used for async queue mode)."""
    try:
        redis_connection = _get_redis_connection()
        redis_connection.ping()
    except RedisError as exc:
        raise HTTPException(
            status_code=503,
            detail={
                "status": "error",
                "redis": "unavailable",
                "error": str(exc),
            },
        ) from exc

    return {"status": "ok", "redis": "ok"}


@app.get("/health/worker")
def health_worker():
    """Worker health check endpoint (only meaningful when ASYNC_QUEUE_ENABLED=true)."""
    if not settings.ASYNC_QUEUE_ENABLED:
        return {"status": "skipped", "async_enabled": False}

    try:
        redis_connection = _get_redis_connection()
        redis_connection.ping()
        workers = Worker.all(connection=redis_connection)
    except RedisError as exc:
        raise HTTPException(
            status_code=503,
            detail={
                "status": "error",
                "redis": "unavailable",
                "error": str(exc),
            },
        ) from exc

    active_workers = []
    for worker in workers:
        try:
            if any(queue.name == settings.RQ_QUEUE_NAME for queue in worker.queues):
                active_workers.append(worker.name)
        except Exception:  # noqa: BLE001
            active_workers.append(worker.name)

    if not active_workers:
        raise HTTPException(
            status_code=503,
            detail={
                "status": "error",
                "worker": "unavailable",
                "queue": settings.RQ_QUEUE_NAME,
                "workers": 0,
            },
        )

    return {
        "status": "ok",
        "async_enabled": True,
        "queue": settings.RQ_QUEUE_NAME,
        "workers": len(active_workers),
    }
