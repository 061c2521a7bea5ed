from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tariffnav import __version__
from tariffnav.api.routes_classify import router as classify_router
from tariffnav.classification.engine import build_engine
from tariffnav.errors import ClassificationFailure
from tariffnav.observability import (
    bind_request_id,
    current_request_id,
    log_event,
    new_request_id,
    redact_secret,
    reset_request_id,
    timed_event,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        app.state.engine = build_engine()
    except Exception:  # pragma: no cover - surfaced as 503 by get_engine
        logger.exception("Classification engine bootstrap failed")
        app.state.engine = None
    yield
    app.state.engine = None


app = FastAPI(title="tariffnav API", version=__version__, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(classify_router)


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or current_request_id() or new_request_id()
    token = bind_request_id(request_id)
    redacted_key = redact_secret(request.headers.get("X-API-Key"))
    try:
        with timed_event(
            "request.completed",
            method=request.method,
            path=str(request.url.path),
            api_key=redacted_key,
        ) as event:
            response = await call_next(request)
            event["status"] = response.status_code
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        reset_request_id(token)


def _normalize_validation_errors(raw_errors: List[Dict[str, Any]]) -> Dict[str, Any]:
    fields: List[Dict[str, str]] = []
    for err in raw_errors:
        loc_parts = [str(part) for part in err.get("loc", []) if part != "body"]
        path = ".".join(["request", *loc_parts]) if loc_parts else "request"
        fields.append({"path": path, "message": err.get("msg", "Invalid request")})
    return {"error": "VALIDATION_ERROR", "fields": fields}


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content=_normalize_validation_errors(exc.errors()))


@app.exception_handler(ClassificationFailure)
async def handle_classification_failure(request: Request, exc: ClassificationFailure):
    log_event("classification.failed", path=str(request.url.path), error=str(exc))
    return JSONResponse(status_code=422, content={"error": "CLASSIFICATION_FAILED", **exc.to_payload()})


@app.get("/health")
def health(request: Request) -> Dict[str, Any]:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        return {"ok": False, "status": "starting", "version": __version__}
    return {
        "ok": True,
        "status": "ok",
        "version": __version__,
        "hierarchy_version": engine.store.version,
        "routes": len(engine.routes),
    }
