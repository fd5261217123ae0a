"""
Upload orchestration: one saga per file, files processed strictly in order.

Each file moves through an explicit state machine:

    RECEIVED -> METADATA_PENDING -> METADATA_CREATED -> OBJECT_UPLOADED
      -> (video) THUMBNAIL_PENDING -> THUMBNAIL_READY -> THUMBNAIL_UPLOADED
      -> METADATA_FINALIZING -> COMPLETE

Failures before the metadata row exists end in REJECTED or FAILED with
nothing to undo. Failures after it exists go through ROLLBACK_REQUIRED,
whose compensations (delete the row, remove local temp files) are
best-effort and end in ROLLED_BACK. Objects already written to the object
store are not deleted on rollback.

The batch driver stops at the first file that does not reach COMPLETE.
Files completed before it stay committed; files after it are never
attempted.
"""
import asyncio
import enum
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from app.media.transcoder import MediaTranscoder
from app.services.file_validator import MediaKind, classify
from app.services.key_namer import derive_keys
from app.services.metadata_store import MetadataStore
from app.services.upload_errors import (
    InsertError,
    TranscodeError,
    UpdateError,
    UploadError,
    UploadPipelineError,
    ValidationError,
)
from app.utils.logging import (
    log_rollback_step_failed,
    log_saga_transition,
    log_upload_completed,
    log_upload_failed,
    log_upload_started,
)
from app.utils.metrics import (
    media_upload_rollbacks_total,
    media_upload_step_duration_seconds,
    media_uploads_total,
)

logger = logging.getLogger(__name__)

THUMBNAIL_CONTENT_TYPE = "image/jpeg"


class ObjectStore(Protocol):
    def upload_file(self, local_path: str, object_key: str, content_type: str) -> None:
        ...

    def public_url(self, object_key: str) -> str:
        ...


class SagaState(str, enum.Enum):
    """States of a single file's upload saga."""
    RECEIVED = "received"
    REJECTED = "rejected"
    METADATA_PENDING = "metadata_pending"
    METADATA_CREATED = "metadata_created"
    OBJECT_UPLOADED = "object_uploaded"
    THUMBNAIL_PENDING = "thumbnail_pending"
    THUMBNAIL_READY = "thumbnail_ready"
    THUMBNAIL_UPLOADED = "thumbnail_uploaded"
    METADATA_FINALIZING = "metadata_finalizing"
    COMPLETE = "complete"
    FAILED = "failed"
    ROLLBACK_REQUIRED = "rollback_required"
    ROLLED_BACK = "rolled_back"


TERMINAL_STATES = frozenset({
    SagaState.COMPLETE,
    SagaState.REJECTED,
    SagaState.FAILED,
    SagaState.ROLLED_BACK,
})


@dataclass
class FileUploadTask:
    """
    One incoming file for the duration of a request.

    The orchestrator owns ``source_path`` (and ``thumbnail_path`` once set)
    and removes both before moving on to the next file.
    """
    source_path: str
    original_filename: str
    declared_media_type: str
    size: int
    owner_id: str
    classification: Optional[MediaKind] = None
    derived_key: Optional[str] = None
    derived_thumbnail_key: Optional[str] = None
    record_id: Optional[str] = None
    file_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    thumbnail_path: Optional[str] = None
    state: SagaState = SagaState.RECEIVED
    error: Optional[UploadPipelineError] = None
    source_removed: bool = False
    history: List[SagaState] = field(default_factory=list)

    @property
    def is_video(self) -> bool:
        return self.classification == MediaKind.VIDEO


@dataclass(frozen=True)
class UploadOutcome:
    """Result of a file that reached COMPLETE."""
    url: str
    thumbnail: Optional[str]
    filename: str
    size: int
    type: str


def remove_temp_file(path: Optional[str]) -> bool:
    """Remove a local temp file if it is still there; True if something was removed."""
    if not path:
        return False
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False


class UploadOrchestrator:
    """
    Drives files through the upload saga using injected collaborators.

    Args:
        metadata_store: Record store for upload rows
        object_store: Binary store with public URLs
        transcoder: Still-frame extractor for videos
        temp_dir: Directory thumbnails are written to before upload
        thumbnail_timestamp: Seek position (seconds) for the still frame
        clock: Time source used for key derivation
    """

    def __init__(
        self,
        metadata_store: MetadataStore,
        object_store: ObjectStore,
        transcoder: MediaTranscoder,
        temp_dir: str,
        thumbnail_timestamp: str = "1",
        clock: Callable[[], float] = time.time,
    ):
        self._metadata = metadata_store
        self._objects = object_store
        self._transcoder = transcoder
        self._temp_dir = temp_dir
        self._thumbnail_timestamp = thumbnail_timestamp
        self._clock = clock

        # Transition table: every non-terminal state has exactly one step
        self._steps: Dict[SagaState, Callable[[FileUploadTask], Awaitable[SagaState]]] = {
            SagaState.RECEIVED: self._classify,
            SagaState.METADATA_PENDING: self._insert_metadata,
            SagaState.METADATA_CREATED: self._upload_object,
            SagaState.OBJECT_UPLOADED: self._route_after_upload,
            SagaState.THUMBNAIL_PENDING: self._generate_thumbnail,
            SagaState.THUMBNAIL_READY: self._upload_thumbnail,
            SagaState.THUMBNAIL_UPLOADED: self._begin_finalize,
            SagaState.METADATA_FINALIZING: self._finalize_metadata,
            SagaState.ROLLBACK_REQUIRED: self._roll_back,
        }

    async def process(self, tasks: Sequence[FileUploadTask]) -> List[UploadOutcome]:
        """
        Run every task's saga in order.

        Returns:
            One outcome per task, in submission order

        Raises:
            UploadPipelineError: The error of the first task that did not
                complete. Later tasks are not attempted, but their temp
                files are still removed.
        """
        outcomes: List[UploadOutcome] = []
        remaining = list(tasks)
        try:
            while remaining:
                task = remaining.pop(0)
                await self.run(task)
                if task.state != SagaState.COMPLETE:
                    raise task.error
                outcomes.append(self._outcome(task))
        finally:
            for skipped in remaining:
                self._release_source(skipped)

        logger.info(f"Processed {len(outcomes)} file(s)")
        return outcomes

    async def run(self, task: FileUploadTask) -> FileUploadTask:
        """Run a single task to a terminal state."""
        started = time.perf_counter()
        log_upload_started(
            logger,
            filename=task.original_filename,
            user_id=task.owner_id,
            media_type=task.declared_media_type,
        )

        try:
            while task.state not in TERMINAL_STATES:
                step = self._steps[task.state]
                step_started = time.perf_counter()
                try:
                    next_state = await step(task)
                except Exception as e:
                    next_state = self._fail_unexpectedly(task, e)
                elapsed = time.perf_counter() - step_started

                media_upload_step_duration_seconds.labels(step=task.state.value).observe(elapsed)
                log_saga_transition(
                    logger,
                    key=task.derived_key,
                    from_state=task.state.value,
                    to_state=next_state.value,
                    record_id=task.record_id,
                    duration_ms=elapsed * 1000,
                )
                task.history.append(task.state)
                task.state = next_state
        finally:
            self._release_source(task)

        duration_ms = (time.perf_counter() - started) * 1000
        kind = task.classification.value if task.classification else MediaKind.REJECTED.value
        media_uploads_total.labels(media_kind=kind, outcome=task.state.value).inc()

        if task.state == SagaState.COMPLETE:
            log_upload_completed(
                logger,
                key=task.derived_key,
                record_id=task.record_id,
                user_id=task.owner_id,
                size=task.size,
                duration_ms=duration_ms,
                has_thumbnail=task.thumbnail_url is not None,
            )
        else:
            log_upload_failed(
                logger,
                key=task.derived_key,
                state=task.state.value,
                reason=task.error.reason if task.error else "unknown",
                error=task.error.details if task.error else None,
                record_id=task.record_id,
                user_id=task.owner_id,
                duration_ms=duration_ms,
            )
        return task

    # ------------------------------------------------------------------
    # Saga steps. Each returns the next state; collaborator failures are
    # recorded on the task and routed to FAILED or ROLLBACK_REQUIRED.
    # ------------------------------------------------------------------

    async def _classify(self, task: FileUploadTask) -> SagaState:
        task.classification = classify(task.declared_media_type)
        if task.classification == MediaKind.REJECTED:
            task.error = ValidationError()
            return SagaState.REJECTED

        keys = derive_keys(task.original_filename, clock=self._clock)
        task.derived_key = keys.key
        task.derived_thumbnail_key = keys.thumbnail_key
        return SagaState.METADATA_PENDING

    async def _insert_metadata(self, task: FileUploadTask) -> SagaState:
        try:
            record = await self._metadata.insert(
                name=task.derived_key,
                user_id=task.owner_id,
                size=task.size,
            )
        except Exception as e:
            task.error = InsertError(cause=e)
            return SagaState.FAILED

        if record is None or not record.id:
            task.error = InsertError(cause=LookupError("insert returned no record"))
            return SagaState.FAILED

        task.record_id = record.id
        return SagaState.METADATA_CREATED

    async def _upload_object(self, task: FileUploadTask) -> SagaState:
        try:
            await asyncio.to_thread(
                self._objects.upload_file,
                task.source_path,
                task.derived_key,
                task.declared_media_type,
            )
            task.file_url = self._objects.public_url(task.derived_key)
        except Exception as e:
            task.error = UploadError(cause=e)
            return SagaState.ROLLBACK_REQUIRED

        return SagaState.OBJECT_UPLOADED

    async def _route_after_upload(self, task: FileUploadTask) -> SagaState:
        if task.is_video:
            return SagaState.THUMBNAIL_PENDING
        return SagaState.METADATA_FINALIZING

    async def _generate_thumbnail(self, task: FileUploadTask) -> SagaState:
        # Set before the call so a partial frame is cleaned up on rollback
        task.thumbnail_path = os.path.join(self._temp_dir, task.derived_thumbnail_key)
        try:
            await self._transcoder.extract_frame(
                task.source_path,
                task.thumbnail_path,
                self._thumbnail_timestamp,
            )
        except Exception as e:
            task.error = TranscodeError(cause=e)
            return SagaState.ROLLBACK_REQUIRED

        return SagaState.THUMBNAIL_READY

    async def _upload_thumbnail(self, task: FileUploadTask) -> SagaState:
        try:
            await asyncio.to_thread(
                self._objects.upload_file,
                task.thumbnail_path,
                task.derived_thumbnail_key,
                THUMBNAIL_CONTENT_TYPE,
            )
            task.thumbnail_url = self._objects.public_url(task.derived_thumbnail_key)
        except Exception as e:
            task.error = UploadError(cause=e)
            return SagaState.ROLLBACK_REQUIRED

        self._discard_thumbnail(task)
        return SagaState.THUMBNAIL_UPLOADED

    async def _begin_finalize(self, task: FileUploadTask) -> SagaState:
        return SagaState.METADATA_FINALIZING

    async def _finalize_metadata(self, task: FileUploadTask) -> SagaState:
        try:
            await self._metadata.update(
                task.record_id,
                url=task.file_url,
                thumbnail=task.thumbnail_url,
            )
        except Exception as e:
            task.error = UpdateError(cause=e)
            return SagaState.ROLLBACK_REQUIRED

        return SagaState.COMPLETE

    async def _roll_back(self, task: FileUploadTask) -> SagaState:
        reason = task.error.reason if task.error else "unknown"
        media_upload_rollbacks_total.labels(reason=reason).inc()
        logger.warning(
            f"Rolling back {task.derived_key} after {reason}",
            extra={"event": "rollback_started", "record_id": task.record_id, "reason": reason},
        )

        if task.record_id is not None:
            try:
                await self._metadata.delete(task.record_id)
            except Exception as e:
                log_rollback_step_failed(
                    logger,
                    step="delete_metadata",
                    error=str(e),
                    record_id=task.record_id,
                )

        self._release_source(task)
        self._discard_thumbnail(task)
        return SagaState.ROLLED_BACK

    def _fail_unexpectedly(self, task: FileUploadTask, error: Exception) -> SagaState:
        """Route an exception that escaped a step to a compensating state."""
        logger.error(
            f"Unexpected error in state {task.state.value} for {task.derived_key}: {error}",
            exc_info=True,
            extra={"event": "saga_step_crashed", "record_id": task.record_id},
        )
        if task.error is None:
            task.error = UploadPipelineError(cause=error)

        if task.state == SagaState.ROLLBACK_REQUIRED:
            return SagaState.ROLLED_BACK
        if task.record_id is not None:
            return SagaState.ROLLBACK_REQUIRED
        return SagaState.FAILED

    def _discard_thumbnail(self, task: FileUploadTask) -> None:
        try:
            remove_temp_file(task.thumbnail_path)
        except OSError as e:
            logger.warning(
                f"Failed to delete thumbnail temp file {task.thumbnail_path}: {e}",
                extra={"event": "temp_file_cleanup_failed", "record_id": task.record_id},
            )
        task.thumbnail_path = None

    def _release_source(self, task: FileUploadTask) -> None:
        """Remove the task's source temp file exactly once."""
        if task.source_removed:
            return
        task.source_removed = True
        try:
            remove_temp_file(task.source_path)
        except OSError as e:
            logger.warning(
                f"Failed to delete temp file {task.source_path}: {e}",
                extra={"event": "temp_file_cleanup_failed", "record_id": task.record_id},
            )

    @staticmethod
    def _outcome(task: FileUploadTask) -> UploadOutcome:
        return UploadOutcome(
            url=task.file_url,
            thumbnail=task.thumbnail_url,
            filename=task.derived_key,
            size=task.size,
            type=task.declared_media_type,
        )
