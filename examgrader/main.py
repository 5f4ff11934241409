# examgrader/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from examgrader.api.attempts import router as attempts_router
from examgrader.api.exams import router as exams_router
from examgrader.core.config import settings
from examgrader.db.session import init_db

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="Exam Evaluation Service",
    version="1.0.0",
    lifespan=lifespan,
)

# --------------------------------------------------
# CORS CONFIG
# --------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",  # frontend
        "http://127.0.0.1:5173",
    ],
    allow_origin_regex=r"http://localhost(:[0-9]+)?",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --------------------------------------------------
# API ROUTES
# --------------------------------------------------

# Exams (authoring, model answers, batch evaluation, summary)
app.include_router(
    exams_router,
    prefix="/api/v1",
)

# Attempts (answers, submission, single evaluation, reports)
app.include_router(
    attempts_router,
    prefix="/api/v1",
)


# --------------------------------------------------
# ROOT HEALTH CHECK
# --------------------------------------------------
@app.get("/")
def health_check():
    return {
        "status": "ok",
        "service": "Exam Evaluation Service",
        "version": "1.0.0"
    }
