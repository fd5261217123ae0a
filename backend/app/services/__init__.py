"""
Business logic services.
"""
from app.services.upload_orchestrator import UploadOrchestrator, FileUploadTask, SagaState
from app.services.metadata_store import SqlAlchemyMetadataStore

__all__ = [
    "UploadOrchestrator",
    "FileUploadTask",
    "SagaState",
    "SqlAlchemyMetadataStore",
]
