"""
Media processing helpers (thumbnail extraction).
"""
from app.media.transcoder import FfmpegTranscoder, get_transcoder

__all__ = ["FfmpegTranscoder", "get_transcoder"]
