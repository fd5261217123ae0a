"""
Video thumbnail extraction through the ffmpeg command line tool.

ffmpeg is treated as a black box: it either writes a JPEG still frame to
the requested path or fails. The subprocess call is blocking, so it runs in
a worker thread and the caller simply awaits the result.
"""
import asyncio
import logging
import os
import subprocess
from typing import Optional, Protocol

from app.config import settings

logger = logging.getLogger(__name__)


class TranscoderError(RuntimeError):
    """Raised when a still frame could not be produced."""


class MediaTranscoder(Protocol):
    async def extract_frame(self, video_path: str, output_path: str, timestamp: str) -> str:
        ...


class FfmpegTranscoder:
    """Grab a single frame from a video with ffmpeg."""

    def __init__(self, ffmpeg_path: Optional[str] = None):
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path

    def build_command(self, video_path: str, output_path: str, timestamp: str) -> list[str]:
        return [
            self.ffmpeg_path,
            "-y",
            "-loglevel", "error",
            "-ss", str(timestamp),
            "-i", video_path,
            "-frames:v", "1",
            "-q:v", "2",
            output_path,
        ]

    def _run(self, video_path: str, output_path: str, timestamp: str) -> str:
        cmd = self.build_command(video_path, output_path, timestamp)
        try:
            subprocess.run(cmd, capture_output=True, text=True, check=True)
        except FileNotFoundError as e:
            raise TranscoderError(f"ffmpeg not found at {self.ffmpeg_path}") from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise TranscoderError(
                f"ffmpeg exited with status {e.returncode}: {stderr}"
            ) from e

        # ffmpeg exits 0 without writing anything when the seek lands past the end
        if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
            raise TranscoderError(f"ffmpeg produced no frame at {timestamp}s")

        logger.debug(f"Extracted frame at {timestamp}s from {video_path} to {output_path}")
        return output_path

    async def extract_frame(self, video_path: str, output_path: str, timestamp: str) -> str:
        """
        Write one JPEG frame taken ``timestamp`` seconds into the video.

        Returns:
            The output path

        Raises:
            TranscoderError: If ffmpeg is missing, fails, or writes nothing
        """
        return await asyncio.to_thread(self._run, video_path, output_path, timestamp)


_transcoder: Optional[FfmpegTranscoder] = None


def get_transcoder() -> FfmpegTranscoder:
    """Get the shared transcoder instance."""
    global _transcoder
    if _transcoder is None:
        _transcoder = FfmpegTranscoder()
    return _transcoder
