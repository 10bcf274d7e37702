import logging
import sys

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from clinassist.api.v1 import articles, chat, health, medical
from clinassist.core.config import settings
from clinassist.core.dependencies import shutdown_summary_queue
from clinassist.core.exceptions import ClinicalAIError
from clinassist.db.session import init_db


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger("clinassist")

app = FastAPI(title=settings.PROJECT_NAME)

logger.info("🚀 Clinical Assist starting up")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

init_db()


@app.exception_handler(ValidationError)
def on_validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.errors(include_url=False, include_context=False)})


@app.exception_handler(ClinicalAIError)
def on_clinical_ai_error(request: Request, exc: ClinicalAIError):
    logger.error(f"{exc.error_code}: {exc.message}")
    return JSONResponse(
        status_code=503,
        content={"error_code": exc.error_code, "detail": "AI service temporarily unavailable"},
    )


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/readyz")
def ready():
    return {"ready": True}


@app.on_event("shutdown")
def on_shutdown():
    logger.info("🛑 Clinical Assist shutting down")
    shutdown_summary_queue()


app.include_router(chat.router, prefix=settings.API_V1_STR, tags=["Chat"])
app.include_router(medical.router, prefix=settings.API_V1_STR, tags=["Medical"])
app.include_router(articles.router, prefix=settings.API_V1_STR, tags=["Articles"])
app.include_router(health.router, prefix=settings.API_V1_STR, tags=["Health"])
