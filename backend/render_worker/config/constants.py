"""
Render Worker Constants
"""

from typing import FrozenSet


# Output format (fixed for every job)
VIDEO_WIDTH: int = 1080
VIDEO_HEIGHT: int = 1920
VIDEO_FPS: int = 30
VIDEO_DURATION_S: int = 8
VIDEO_TOTAL_FRAMES: int = VIDEO_FPS * VIDEO_DURATION_S

# Foreground cover art square
FOREGROUND_SIZE: int = 900

# Background push-in and blur
ZOOM_START: float = 1.0
ZOOM_END: float = 1.15
BACKGROUND_BLUR_SIGMA: int = 30

# FFmpeg encoding
FFMPEG_VIDEO_CODEC: str = "libx264"
FFMPEG_PRESET: str = "medium"
FFMPEG_CRF: int = 23
FFMPEG_PIXEL_FORMAT: str = "yuv420p"
FFMPEG_MOVFLAGS: str = "+faststart"
FFMPEG_STDERR_TAIL_CHARS: int = 2000

# Published artifact
VIDEO_CONTENT_TYPE: str = "video/mp4"
VIDEO_EXTENSION: str = "mp4"

# Media fetch
REDIRECT_STATUSES: FrozenSet[int] = frozenset({301, 302, 303, 307, 308})
DOWNLOAD_CHUNK_SIZE: int = 64 * 1024
DEFAULT_IMAGE_SUFFIX: str = ".jpg"
IMAGE_SUFFIXES_BY_CONTENT_TYPE = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/bmp": ".bmp",
}

# Queue API (worker-poll / worker-update contract)
QUEUE_POLL_ENDPOINT: str = "worker-poll"
QUEUE_UPDATE_ENDPOINT: str = "worker-update"
QUEUE_HEARTBEAT_ENDPOINT: str = "worker-heartbeat"
QUEUE_STATUS_DONE: str = "done"
QUEUE_STATUS_ERROR: str = "error"

# Database queue
CLAIM_MAX_ATTEMPTS: int = 5
