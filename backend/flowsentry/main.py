import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from dotenv import load_dotenv
from fastapi import FastAPI

load_dotenv(Path(__file__).resolve().parents[2] / ".env")
from fastapi.middleware.cors import CORSMiddleware

from .config import FRONTEND_URL, SEED_FILE
from .engine import engine, store
from .routes import router

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    from .database import close_db, init_db

    try:
        await init_db()
        log.info("Database initialized.")
    except Exception as exc:
        log.warning("Database not available, alerts will not be persisted: %s", exc)

    if SEED_FILE:
        store.load_businesses(Path(SEED_FILE))

    try:
        await engine.startup()
    except Exception as exc:
        log.warning("Initial community computation failed: %s", exc)
    yield
    await close_db()


app = FastAPI(
    title="flowsentry API",
    description="Streaming transaction risk scoring and community detection",
    version="0.1.0",
    lifespan=lifespan,
)

origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
]

if FRONTEND_URL:
    origins.append(FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
