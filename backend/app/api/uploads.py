"""
Upload endpoint.

POST /api/upload accepts one or more files under the multipart field
``files``. Each part is spooled to its own temp file, then the batch is
handed to the UploadOrchestrator, which pushes every file through the
upload saga in submission order.

Security:
- Requires a valid bearer token (verified by the identity service)
- Only whitelisted image/video MIME types are accepted
- Per-file size cap (MAX_UPLOAD_BYTES)
"""
import logging
import os
import secrets
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import AuthenticatedUser, get_current_user
from app.config import settings
from app.database import get_db
from app.media.transcoder import get_transcoder
from app.schemas.upload import ErrorResponse, UploadResult
from app.services.metadata_store import SqlAlchemyMetadataStore
from app.services.upload_errors import (
    PayloadTooLargeError,
    UploadPipelineError,
    ValidationError,
)
from app.services.upload_orchestrator import (
    FileUploadTask,
    UploadOrchestrator,
    remove_temp_file,
)
from app.storage.r2_client import get_r2_client

logger = logging.getLogger(__name__)

router = APIRouter()

SPOOL_CHUNK_SIZE = 1024 * 1024


def get_upload_orchestrator(db: AsyncSession = Depends(get_db)) -> UploadOrchestrator:
    """Build an orchestrator wired to the production collaborators."""
    return UploadOrchestrator(
        metadata_store=SqlAlchemyMetadataStore(db),
        object_store=get_r2_client(),
        transcoder=get_transcoder(),
        temp_dir=settings.upload_temp_dir,
        thumbnail_timestamp=settings.thumbnail_timestamp,
    )


async def spool_upload(upload: UploadFile, temp_dir: str, max_bytes: int) -> tuple[str, int]:
    """
    Copy an uploaded part to a temp file owned by this request.

    Returns:
        Tuple of (temp file path, size in bytes)

    Raises:
        PayloadTooLargeError: If the part is larger than ``max_bytes``
    """
    os.makedirs(temp_dir, exist_ok=True)
    extension = os.path.splitext(upload.filename or "")[1]
    path = os.path.join(temp_dir, f"upload_{secrets.token_hex(16)}{extension}")

    size = 0
    try:
        with open(path, "wb") as out:
            while True:
                chunk = await upload.read(SPOOL_CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise PayloadTooLargeError(
                        f"File too large. Maximum allowed size is {max_bytes // (1024 * 1024)} MB."
                    )
                out.write(chunk)
    except BaseException:
        remove_temp_file(path)
        raise

    return path, size


@router.post(
    "",
    response_model=List[UploadResult],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def upload_files(
    files: Optional[List[UploadFile]] = File(None),
    current_user: AuthenticatedUser = Depends(get_current_user),
    orchestrator: UploadOrchestrator = Depends(get_upload_orchestrator),
):
    """
    Upload a batch of images/videos.

    Flow per file (in submission order):
    1. Validate declared MIME type
    2. Insert metadata row
    3. Upload binary to R2
    4. Videos: extract a still frame and upload it as thumbnail
    5. Update the row with the public URLs

    The first failing file aborts the request; files completed before it
    stay stored, files after it are not attempted.
    """
    uploads = [f for f in (files or []) if f.filename and f.content_type]
    logger.info(f"Upload request from {current_user.uid}: {len(uploads)} file(s)")

    if not uploads:
        raise ValidationError("No valid files uploaded")

    spooled: List[str] = []
    try:
        tasks = []
        for upload in uploads:
            path, size = await spool_upload(upload, settings.upload_temp_dir, settings.max_upload_bytes)
            spooled.append(path)
            tasks.append(FileUploadTask(
                source_path=path,
                original_filename=upload.filename,
                declared_media_type=upload.content_type,
                size=size,
                owner_id=current_user.uid,
            ))

        outcomes = await orchestrator.process(tasks)
    except UploadPipelineError:
        raise
    except Exception as e:
        logger.error(f"Upload failed: {e}", exc_info=True)
        raise UploadPipelineError(cause=e)
    finally:
        for path in spooled:
            remove_temp_file(path)

    logger.info(f"All {len(outcomes)} file(s) processed for {current_user.uid}")
    return [UploadResult(**asdict(outcome)) for outcome in outcomes]


@router.api_route(
    "",
    methods=["GET", "PUT", "PATCH", "DELETE", "OPTIONS"],
    include_in_schema=False,
)
async def upload_method_not_allowed():
    return JSONResponse(
        {"error": "Method not allowed"},
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        headers={"Allow": "POST"},
    )
