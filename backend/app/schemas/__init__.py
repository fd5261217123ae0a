"""
Pydantic schemas for request/response validation.
"""
from app.schemas.upload import UploadResult, ErrorResponse

__all__ = [
    "UploadResult",
    "ErrorResponse",
]
