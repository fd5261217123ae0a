"""
Exception handlers that render upload pipeline errors as JSON.

Body shape is ``{"error": <public message>}``; outside production the
underlying cause is added as ``details``.
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import settings
from app.services.upload_errors import AuthError, UploadPipelineError


def error_body(message: str, details: str = None) -> dict:
    body = {"error": message}
    if details and not settings.is_production:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(UploadPipelineError)
    async def upload_error_handler(request: Request, exc: UploadPipelineError):
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
        return JSONResponse(
            error_body(exc.message, exc.details),
            status_code=exc.status_code,
            headers=headers,
        )
