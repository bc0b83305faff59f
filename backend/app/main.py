from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os
from datetime import datetime

from app.core.config import settings
from app.core.errors import CatalogError, status_code_for
from app.routers import (
    books,
    contributions,
    insights,
    recommendations,
    recommenders,
    search,
)
from app.database import init_db

# ----------------------------
# Logging
# ----------------------------
logger = logging.getLogger("booklist")
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Server fingerprint for debugging
SERVER_BOOT_ID = f"booklist-backend::{os.getpid()}::{datetime.utcnow().isoformat()}"

app = FastAPI(title="Booklist", debug=settings.DEBUG)

BUILD_ID = os.getenv("BUILD_ID", "missing")


# ----------------------------
# CORS
# ----------------------------
cors_origins = settings.cors_origins_list
logger.info("[CORS] allow_origins=%s", cors_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_build_header(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Booklist-Build"] = BUILD_ID
    return response


def _with_cors(request: Request, response: JSONResponse) -> JSONResponse:
    # Error responses bypass CORSMiddleware headers
    origin = request.headers.get("origin")
    if origin and origin in cors_origins:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Methods"] = "*"
        response.headers["Access-Control-Allow-Headers"] = "*"
    return response


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    code = status_code_for(exc)
    logger.warning("[%s] %s %s: %s", code, request.method, request.url.path, exc)
    return _with_cors(request, JSONResponse(status_code=code, content={"detail": str(exc)}))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("[UNHANDLED] %s %s", request.method, request.url.path)
    return _with_cors(request, JSONResponse(status_code=500, content={"detail": "Internal Server Error"}))


# ----------------------------
# Routers
# ----------------------------
app.include_router(recommendations.router, prefix="/api")
app.include_router(books.router, prefix="/api")
app.include_router(recommenders.router, prefix="/api")
app.include_router(insights.router, prefix="/api")
app.include_router(search.router, prefix="/api")
app.include_router(contributions.router, prefix="/api")


@app.on_event("startup")
def on_startup() -> None:
    logger.info("[BOOT] %s", SERVER_BOOT_ID)
    init_db()


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/api/health")
def api_health_check():
    return {"status": "ok"}
