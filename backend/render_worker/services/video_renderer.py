"""
Video Renderer - Turn a still image into a short vertical MP4 with ffmpeg
"""

import json
import os
import shutil
import subprocess
from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, List, Optional

from render_worker.config.constants import (
    BACKGROUND_BLUR_SIGMA,
    FFMPEG_CRF,
    FFMPEG_MOVFLAGS,
    FFMPEG_PIXEL_FORMAT,
    FFMPEG_PRESET,
    FFMPEG_STDERR_TAIL_CHARS,
    FFMPEG_VIDEO_CODEC,
    FOREGROUND_SIZE,
    VIDEO_DURATION_S,
    VIDEO_FPS,
    VIDEO_HEIGHT,
    VIDEO_TOTAL_FRAMES,
    VIDEO_WIDTH,
    ZOOM_END,
    ZOOM_START,
)
from render_worker.services.observability import logger


class FFmpegError(Exception):
    """FFmpeg processing error"""

    def __init__(self, message: str, code: str, details: Optional[str] = None):
        self.message = message
        self.code = code
        self.details = details
        super().__init__(self.message)


class VideoRenderer:
    """
    Render the fixed-format short video for one cover image

    Output: 1080x1920 H.264 at 30 fps for 8 seconds. A blurred, cropped copy
    of the image slowly zooms in behind a static centred square of the image.
    """

    # Error codes
    ERROR_FFMPEG_NOT_FOUND = "FFMPEG_NOT_FOUND"
    ERROR_INPUT_FILE_NOT_FOUND = "INPUT_FILE_NOT_FOUND"
    ERROR_RENDER_FAILED = "RENDER_FAILED"
    ERROR_OUTPUT_MISSING = "OUTPUT_MISSING"

    def __init__(self, ffmpeg_path: str = "ffmpeg", ffprobe_path: str = "ffprobe"):
        """Initialize renderer"""
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path

    def render(
        self,
        image_path: str,
        output_path: str,
        artist: Optional[str] = None,
        title: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Render image into the output video file

        Args:
            image_path: Path to the downloaded source image
            output_path: Path for the MP4 to write
            artist: Display metadata, reserved for overlay text
            title: Display metadata, reserved for overlay text

        Returns:
            Dict with output path, size and (when ffprobe is available) stream info

        Raises:
            FFmpegError: If rendering fails
        """
        if not os.path.exists(image_path):
            raise FFmpegError(
                f"Input file not found: {image_path}",
                self.ERROR_INPUT_FILE_NOT_FOUND,
            )

        if not self._is_available(self.ffmpeg_path):
            raise FFmpegError(
                f"FFmpeg not found: {self.ffmpeg_path}",
                self.ERROR_FFMPEG_NOT_FOUND,
            )

        Path(output_path).parent.mkdir(parents=True, exist_ok=True)

        logger.info(
            "render_start",
            input_path=image_path,
            output_path=output_path,
            artist=artist,
            title=title,
        )

        result = self._run_ffmpeg(self.build_command(image_path, output_path))

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="ignore")
            tail = stderr[-FFMPEG_STDERR_TAIL_CHARS:].strip()
            logger.error(
                "render_failed",
                input_path=image_path,
                exit_code=result.returncode,
                stderr=tail,
            )
            raise FFmpegError(
                f"FFmpeg exited with code {result.returncode}: {tail}",
                self.ERROR_RENDER_FAILED,
                details=stderr,
            )

        if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
            raise FFmpegError(
                f"FFmpeg produced no output: {output_path}",
                self.ERROR_OUTPUT_MISSING,
            )

        info: Dict[str, Any] = {
            "output_path": output_path,
            "size_bytes": os.path.getsize(output_path),
        }
        if self._is_available(self.ffprobe_path):
            info.update(self.probe(output_path))

        logger.info("render_complete", **info)
        return info

    def build_command(self, image_path: str, output_path: str) -> List[str]:
        """
        Build the ffmpeg invocation for one render

        Args:
            image_path: Input image path
            output_path: Output video path

        Returns:
            Argument list for subprocess
        """
        return [
            self.ffmpeg_path,
            "-hide_banner",
            "-y",  # Overwrite output file
            "-loop", "1",
            "-framerate", str(VIDEO_FPS),
            "-i", image_path,
            "-filter_complex", self.build_filter_graph(),
            "-map", "[v]",
            "-t", str(VIDEO_DURATION_S),
            "-frames:v", str(VIDEO_TOTAL_FRAMES),
            "-r", str(VIDEO_FPS),
            "-c:v", FFMPEG_VIDEO_CODEC,
            "-preset", FFMPEG_PRESET,
            "-crf", str(FFMPEG_CRF),
            "-pix_fmt", FFMPEG_PIXEL_FORMAT,
            "-movflags", FFMPEG_MOVFLAGS,
            "-an",  # No audio
            output_path,
        ]

    @staticmethod
    def build_filter_graph() -> str:
        """Blurred push-in background with a static centred square on top"""
        last_frame = max(VIDEO_TOTAL_FRAMES - 1, 1)
        zoom = f"{ZOOM_START}+({ZOOM_END}-{ZOOM_START})*on/{last_frame}"
        size = f"{VIDEO_WIDTH}x{VIDEO_HEIGHT}"

        background = (
            f"[bgsrc]scale={VIDEO_WIDTH}:{VIDEO_HEIGHT}:force_original_aspect_ratio=increase,"
            f"crop={VIDEO_WIDTH}:{VIDEO_HEIGHT},"
            f"gblur=sigma={BACKGROUND_BLUR_SIGMA},"
            f"zoompan=z='{zoom}':x='iw/2-(iw/zoom/2)':y='ih/2-(ih/zoom/2)'"
            f":d=1:s={size}:fps={VIDEO_FPS},"
            f"setsar=1[bg]"
        )
        foreground = (
            f"[fgsrc]scale={FOREGROUND_SIZE}:{FOREGROUND_SIZE}:force_original_aspect_ratio=increase,"
            f"crop={FOREGROUND_SIZE}:{FOREGROUND_SIZE},"
            f"setsar=1[fg]"
        )
        composite = f"[bg][fg]overlay=(W-w)/2:(H-h)/2,format={FFMPEG_PIXEL_FORMAT}[v]"

        return ";".join(["[0:v]split=2[bgsrc][fgsrc]", background, foreground, composite])

    def _run_ffmpeg(self, cmd: List[str]) -> subprocess.CompletedProcess:
        """
        Run ffmpeg to completion

        The child gets its own session so a terminal interrupt aimed at the
        worker does not kill an in-flight render.
        """
        try:
            return subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            raise FFmpegError(
                f"Could not start FFmpeg: {e}",
                self.ERROR_FFMPEG_NOT_FOUND,
                details=str(e),
            ) from e

    @staticmethod
    def _is_available(binary: str) -> bool:
        if os.path.isabs(binary) or os.sep in binary:
            return os.path.exists(binary) and os.access(binary, os.X_OK)
        return shutil.which(binary) is not None

    def probe(self, video_path: str) -> Dict[str, Any]:
        """
        Get video stream properties using ffprobe

        Args:
            video_path: Path to video file

        Returns:
            Dict with width, height, fps and duration_s (empty if probing fails)
        """
        cmd = [
            self.ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            video_path,
        ]

        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            logger.warning("ffprobe_failed", video_path=video_path, error=str(e))
            return {}

        if result.returncode != 0:
            logger.warning("ffprobe_failed", video_path=video_path, exit_code=result.returncode)
            return {}

        try:
            metadata = json.loads(result.stdout)
        except ValueError as e:
            logger.warning("ffprobe_failed", video_path=video_path, error=str(e))
            return {}

        stream = next(
            (s for s in metadata.get("streams", []) if s.get("codec_type") == "video"),
            {},
        )
        fps = None
        if stream.get("r_frame_rate") and stream["r_frame_rate"] != "0/0":
            fps = float(Fraction(stream["r_frame_rate"]))

        duration = metadata.get("format", {}).get("duration") or stream.get("duration")

        return {
            "width": stream.get("width"),
            "height": stream.get("height"),
            "fps": fps,
            "duration_s": float(duration) if duration else None,
            "codec": stream.get("codec_name"),
            "pix_fmt": stream.get("pix_fmt"),
        }
