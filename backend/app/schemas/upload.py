"""
Pydantic schemas for the upload endpoint.
"""
from pydantic import BaseModel, Field
from typing import Optional


class UploadResult(BaseModel):
    """One entry of a successful upload response."""
    success: bool = Field(True, description="Always true; failures return an error body instead")
    url: str = Field(..., description="Public URL of the stored file")
    thumbnail: Optional[str] = Field(None, description="Public URL of the video thumbnail, null for images")
    filename: str = Field(..., description="Derived storage key")
    size: int = Field(..., description="Size of the original payload in bytes")
    type: str = Field(..., description="Declared MIME type")

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": True,
                "url": "https://media.example.com/1718000000000-k3j9x0a1b2c3d.mp4",
                "thumbnail": "https://media.example.com/1718000000000-k3j9x0a1b2c3d-thumb.jpg",
                "filename": "1718000000000-k3j9x0a1b2c3d.mp4",
                "size": 1048576,
                "type": "video/mp4"
            }
        }
    }


class ErrorResponse(BaseModel):
    """Error body returned by the upload endpoint."""
    error: str
    details: Optional[str] = None
