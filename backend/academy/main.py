from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .config import settings
from .db import get_conn, pool
from .logging_utils import setup_logging
from .middleware.request_context import RequestContextMiddleware
from .routes import (
    checkout,
    coaching,
    courses,
    cron,
    custom_audiences,
    direct_messages,
    email_programs,
    forums,
    streaks,
    stripe_webhook,
    studio,
    video_batches,
)

setup_logging()

if settings.sentry_dsn:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        traces_sample_rate=settings.sentry_traces_sample_rate,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    await pool.open(wait=True)
    try:
        yield
    finally:
        await pool.close()


app = FastAPI(title="Academy Backend", version="0.1.0", lifespan=lifespan)

app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_origin_regex=settings.cors_allow_origin_regex,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        "Accept",
        "X-Requested-With",
        "X-Request-ID",
    ],
)

app.include_router(courses.router)
app.include_router(courses.lessons_router)
app.include_router(studio.router)
app.include_router(checkout.router)
app.include_router(stripe_webhook.router)
app.include_router(email_programs.router)
app.include_router(cron.router)
app.include_router(video_batches.router)
app.include_router(coaching.router)
app.include_router(forums.router)
app.include_router(forums.admin_router)
app.include_router(direct_messages.router)
app.include_router(streaks.router)
app.include_router(custom_audiences.router)


@app.get("/healthz")
async def healthz():
    return {"ok": True, "message": "Backend responding"}


@app.get("/readyz")
async def readyz():
    try:
        async with get_conn() as cur:  # type: ignore[attr-defined]
            await cur.execute("select 1")  # type: ignore[attr-defined]
            await cur.fetchone()
    except Exception as exc:
        raise HTTPException(status_code=503, detail="database unavailable") from exc
    return {"ok": True, "database": "ready"}


@app.get("/metrics")
def metrics_endpoint():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
