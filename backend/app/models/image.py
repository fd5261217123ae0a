"""
Image model for tracking uploaded media.

One row per accepted file (image or video). The binary lives in R2;
this row only records where it is.

Lifecycle:
1. Row inserted with url/thumbnail unset
2. Binary (and thumbnail for videos) uploaded to R2
3. Row updated with the public URLs
4. Any failure after step 1 deletes the row again
"""
from sqlalchemy import Column, String, Integer, DateTime, Index
from sqlalchemy.sql import func

from app.models.base import Base, generate_uuid


class Image(Base):
    """
    Upload metadata model.

    Attributes:
        id: Unique identifier (UUID), assigned on insert
        name: Derived storage key of the binary
        url: Public URL of the binary, null until the upload finishes
        thumbnail: Public URL of the video thumbnail, null for images
        upload_date: When the row was created
        user_id: Owning identity (identity-service uid)
        size: Byte length of the original payload
    """
    __tablename__ = "images"

    id = Column(String, primary_key=True, default=generate_uuid)

    name = Column(String, nullable=False, unique=True)

    url = Column(String, nullable=True)
    thumbnail = Column(String, nullable=True)

    upload_date = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    user_id = Column(String(128), nullable=False, index=True)

    size = Column(Integer, nullable=False)

    __table_args__ = (
        Index('ix_images_user_upload_date', 'user_id', 'upload_date'),
    )

    def __repr__(self):
        return f"<Image(id={self.id}, name={self.name}, user={self.user_id})>"
