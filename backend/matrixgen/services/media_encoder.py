"""FFmpeg encoder — turns a still image (plus optional audio) into a short MP4.

Used by actor registration: providers accept a reference *video*, so the
portrait is looped for a few seconds with either the supplied audio track
(trimmed to the clip) or a silent stereo track.

ffmpeg runs in a worker thread via ``asyncio.to_thread`` so the event loop
keeps serving, and an ``asyncio.Lock`` makes conversions run one at a time.
Callers queue on the lock; they never fail because the encoder is busy.
"""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess

from matrixgen.services.errors import ActorRegistrationError

logger = logging.getLogger(__name__)


class MediaEncoder:
    """Single-tenant ffmpeg wrapper."""

    def __init__(self, ffmpeg_binary: str = "ffmpeg", timeout: int = 120) -> None:
        self.ffmpeg_binary = ffmpeg_binary
        self.timeout = timeout
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def build_image_to_video_command(
        self,
        image_path: str,
        output_path: str,
        seconds: int,
        audio_path: str | None = None,
    ) -> list[str]:
        cmd = [
            self.ffmpeg_binary, "-y",
            "-loop", "1", "-t", str(seconds), "-i", image_path,
        ]
        if audio_path:
            cmd += ["-t", str(seconds), "-i", audio_path]
        else:
            cmd += ["-f", "lavfi", "-t", str(seconds),
                    "-i", "anullsrc=channel_layout=stereo:sample_rate=44100"]
        cmd += [
            "-map", "0:v:0", "-map", "1:a:0",
            "-vf", "scale=-2:720:force_original_aspect_ratio=decrease,"
                   "pad=ceil(iw/2)*2:ceil(ih/2)*2:(ow-iw)/2:(oh-ih)/2",
            "-r", "1",
            "-c:v", "libx264", "-preset", "ultrafast", "-crf", "18",
            "-pix_fmt", "yuv420p",
            "-c:a", "aac", "-b:a", "128k",
            "-shortest",
            output_path,
        ]
        return cmd

    async def image_to_video(
        self,
        image_path: str,
        output_path: str,
        seconds: int,
        audio_path: str | None = None,
    ) -> str:
        """Encode ``image_path`` into an MP4 at ``output_path`` and return that path."""
        cmd = self.build_image_to_video_command(image_path, output_path, seconds, audio_path)
        async with self._lock:
            logger.info("Encoding %s → %s (%ds)", os.path.basename(image_path), output_path, seconds)
            await asyncio.to_thread(self._run, cmd)
        return output_path

    def _run(self, cmd: list[str]) -> None:
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError as e:
            raise ActorRegistrationError(f"ffmpeg not found: {self.ffmpeg_binary}") from e
        except subprocess.TimeoutExpired as e:
            raise ActorRegistrationError(f"ffmpeg timed out after {self.timeout}s") from e
        if result.returncode != 0:
            logger.error("FFmpeg encode failed: %s", result.stderr[-500:])
            raise ActorRegistrationError("video encoding failed")
