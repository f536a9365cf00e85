import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.routers import audits, profile
from app.worker import build_pipeline

logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    pipeline = build_pipeline()
    app.state.pipeline = pipeline
    pipeline.start_worker()
    yield
    await pipeline.stop_worker()


app = FastAPI(title="Site Audit", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(audits.router)
app.include_router(profile.router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
