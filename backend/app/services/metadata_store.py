"""
Metadata store for upload records.

The orchestrator only needs insert/update/delete keyed by record id, so it
depends on the ``MetadataStore`` protocol; ``SqlAlchemyMetadataStore`` is
the production implementation over the ``images`` table.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.image import Image

logger = logging.getLogger(__name__)


@dataclass
class UploadRecord:
    """Snapshot of one row in the metadata store."""
    id: str
    name: str
    user_id: str
    size: int
    upload_date: datetime
    url: Optional[str] = None
    thumbnail: Optional[str] = None


class MetadataStore(Protocol):
    async def insert(self, name: str, user_id: str, size: int) -> Optional[UploadRecord]:
        ...

    async def update(self, record_id: str, url: str, thumbnail: Optional[str]) -> None:
        ...

    async def delete(self, record_id: str) -> None:
        ...


def _to_record(image: Image) -> UploadRecord:
    return UploadRecord(
        id=image.id,
        name=image.name,
        user_id=image.user_id,
        size=image.size,
        upload_date=image.upload_date,
        url=image.url,
        thumbnail=image.thumbnail,
    )


class SqlAlchemyMetadataStore:
    """
    MetadataStore backed by an async SQLAlchemy session.

    Every operation commits on its own: the saga relies on the row being
    durable before the binary upload starts. A failing statement rolls the
    session back and re-raises for the caller to classify.
    """

    def __init__(self, db: AsyncSession):
        self._db = db

    async def insert(self, name: str, user_id: str, size: int) -> Optional[UploadRecord]:
        image = Image(
            name=name,
            url=None,
            thumbnail=None,
            upload_date=datetime.now(timezone.utc),
            user_id=user_id,
            size=size,
        )
        try:
            self._db.add(image)
            # Flush assigns the id; commit is the last statement that can fail
            await self._db.flush()
            record = _to_record(image)
            await self._db.commit()
        except Exception:
            await self._db.rollback()
            raise

        logger.debug(f"Inserted image record {record.id} for {name}")
        return record

    async def update(self, record_id: str, url: str, thumbnail: Optional[str]) -> None:
        try:
            result = await self._db.execute(
                update(Image)
                .where(Image.id == record_id)
                .values(url=url, thumbnail=thumbnail)
            )
            if result.rowcount == 0:
                raise LookupError(f"Image record {record_id} not found")
            await self._db.commit()
        except Exception:
            await self._db.rollback()
            raise

    async def delete(self, record_id: str) -> None:
        try:
            await self._db.execute(
                delete(Image).where(Image.id == record_id)
            )
            await self._db.commit()
        except Exception:
            await self._db.rollback()
            raise
