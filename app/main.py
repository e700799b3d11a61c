from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.api.models import HealthResponse
from app.api.routes import attempts
from app.config import get_settings
from app.core.errors import LessonAttemptError
from app.core.exceptions import global_exception_handler, http_exception_handler, lesson_attempt_exception_handler, request_validation_exception_handler
from app.core.lifespan import lifespan
from app.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware

APP_VERSION = "0.1.0"

settings = get_settings()

app = FastAPI(title="Lesson Attempt Engine", version=APP_VERSION, lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

app.add_middleware(CORSMiddleware, allow_origins=list(settings.allowed_origins), allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type", "authorization", "x-request-id"], expose_headers=["content-length", "x-request-id"])

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(LessonAttemptError, lesson_attempt_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False, response_model=HealthResponse)
async def health_check() -> HealthResponse:
  """Return a simple health status."""
  return HealthResponse(status="ok", version=APP_VERSION)


app.include_router(attempts.router, prefix="/v1/attempts", tags=["attempts"])
