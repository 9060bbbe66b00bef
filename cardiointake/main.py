# cardiointake/main.py
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cardiointake.config import configure_logging, get_settings
from cardiointake.db import init_db
from cardiointake.intake.errors import (
    IntakeError,
    InvalidRequest,
    SessionClosed,
    SubmissionRetry,
    UnknownSession,
)
from cardiointake.api.dependencies import get_rule_table
from cardiointake.api.routes import router as api_router
from cardiointake.api.schemas import ErrorResponse


settings = get_settings()

app = FastAPI(title="Cardiology Intake API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)


@app.on_event("startup")
def on_startup() -> None:
    configure_logging(settings.log_level)
    # A broken rule table must stop the process here, not on the first request
    get_rule_table()
    init_db()


def _status_for(exc: IntakeError) -> int:
    if isinstance(exc, InvalidRequest):
        return 400
    if isinstance(exc, UnknownSession):
        return 404
    if isinstance(exc, SessionClosed):
        return 409
    if isinstance(exc, SubmissionRetry):
        return 503
    return 500


def _error_body(message: str, field: Optional[str]) -> dict:
    return ErrorResponse(error=message, field=field).model_dump()


@app.exception_handler(IntakeError)
async def intake_error_handler(request: Request, exc: IntakeError) -> JSONResponse:
    return JSONResponse(
        status_code=_status_for(exc),
        content=_error_body(exc.message, getattr(exc, "field", None)),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Wrongly-typed request bodies get the same payload as any other invalid
    request, naming the top-level field at fault.
    """
    errors = exc.errors()
    first = errors[0] if errors else {}
    # loc looks like ("body", "responses", "Pain duration?")
    parts = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path")]
    return JSONResponse(
        status_code=400,
        content=_error_body(first.get("msg", "Invalid request."), parts[0] if parts else None),
    )


@app.get("/")
def root():
    return {"message": "Cardiology Intake API is running"}


app.include_router(api_router, prefix="/api")
