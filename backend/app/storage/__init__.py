"""
Storage module for S3-compatible object storage (Cloudflare R2).

Uploaded binaries and video thumbnails are pushed here by the upload
pipeline and served from the bucket's public URL.
"""
from app.storage.r2_client import get_r2_client, R2Client, StorageNotConfiguredError

__all__ = ["get_r2_client", "R2Client", "StorageNotConfiguredError"]
