"""
Media probing and fast-start rewriting using FFmpeg.

The upload pipeline never interprets media itself. It hands a local
file path to two external tools:
1. ffprobe, to read the first stream's dimensions and classify the aspect
2. ffmpeg, to move the moov atom to the front of the container so browsers
   can start playback before the whole file has downloaded

Both tools are hidden behind small protocols so tests (and mock mode)
can substitute deterministic fakes instead of spawning processes.

Subprocesses run via asyncio.to_thread so the event loop keeps serving
other requests while a multi-minute rewrite is in progress.
"""

import asyncio
import json
import logging
import os
import shutil
import subprocess
from typing import Optional

from ...core.videos.models import AspectClassification
from ...core.videos.ports import ContainerRewriter, MediaProber, ProbeError, RewriteError

logger = logging.getLogger(__name__)

# Inclusive width/height bands. 9:16 is 0.5625, 16:9 is 1.777...
PORTRAIT_RATIO_RANGE = (0.5, 0.6)
LANDSCAPE_RATIO_RANGE = (1.7, 1.8)

REWRITE_SUFFIX = ".processing"


def classify_aspect_ratio(width: int, height: int) -> AspectClassification:
    """
    Classify a width/height pair into a coarse orientation.

    Bands are checked in a fixed order: portrait first, then landscape.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid dimensions: {width}x{height}")

    ratio = width / height
    if PORTRAIT_RATIO_RANGE[0] <= ratio <= PORTRAIT_RATIO_RANGE[1]:
        return AspectClassification.PORTRAIT
    if LANDSCAPE_RATIO_RANGE[0] <= ratio <= LANDSCAPE_RATIO_RANGE[1]:
        return AspectClassification.LANDSCAPE
    return AspectClassification.OTHER


def fast_start_output_path(input_path: str) -> str:
    """Where the rewritten copy of ``input_path`` is written."""
    return input_path + REWRITE_SUFFIX


class FFprobeMediaProber:
    """
    Media prober backed by ffprobe.

    Runs ffprobe with JSON output and reads width/height off the first
    stream. The argument list is fixed; downstream tooling depends on it.
    """

    def __init__(self, ffprobe_path: str = "ffprobe", timeout_seconds: float = 600.0):
        self._ffprobe = ffprobe_path
        self._timeout = timeout_seconds

    def build_command(self, path: str) -> list[str]:
        return [
            self._ffprobe,
            "-v", "error",
            "-print_format", "json",
            "-show_streams",
            path,
        ]

    async def probe(self, path: str) -> AspectClassification:
        cmd = self.build_command(path)

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self._timeout,
            )
        except FileNotFoundError as e:
            raise ProbeError(f"ffprobe not found at {self._ffprobe}") from e
        except subprocess.TimeoutExpired as e:
            raise ProbeError(f"ffprobe timed out after {self._timeout}s") from e
        except OSError as e:
            raise ProbeError(f"ffprobe could not be started: {e}") from e

        if result.returncode != 0:
            stderr = _decode_output(result.stderr)
            logger.error(
                "ffprobe failed",
                extra={"path": path, "returncode": result.returncode, "stderr": stderr},
            )
            raise ProbeError(f"ffprobe exited with status {result.returncode}: {stderr.strip()}")

        try:
            info = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ProbeError(f"Could not parse ffprobe output: {e}") from e

        streams = info.get("streams") if isinstance(info, dict) else None
        if not isinstance(streams, list):
            raise ProbeError("ffprobe output has no stream list")
        if not streams:
            raise ProbeError("No streams found in video")

        first = streams[0]
        try:
            width = int(first.get("width", 0))
            height = int(first.get("height", 0))
        except (TypeError, ValueError, AttributeError) as e:
            raise ProbeError(f"Invalid stream dimensions: {e}") from e

        if width <= 0 or height <= 0:
            # e.g. an audio track listed first; there is no ratio to band
            classification = AspectClassification.OTHER
        else:
            classification = classify_aspect_ratio(width, height)

        logger.info(
            "Probed video",
            extra={
                "path": path,
                "resolution": f"{width}x{height}",
                "classification": classification.value,
            },
        )

        return classification


class FFmpegContainerRewriter:
    """
    Fast-start rewriter backed by ffmpeg.

    Copies all streams without re-encoding (-c copy) and relocates the
    container index (-movflags faststart). The input is left alone;
    deleting it is the caller's job.
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout_seconds: float = 600.0):
        self._ffmpeg = ffmpeg_path
        self._timeout = timeout_seconds

    def build_command(self, path: str, output_path: str) -> list[str]:
        return [
            self._ffmpeg,
            "-i", path,
            "-c", "copy",
            "-movflags", "faststart",
            "-f", "mp4",
            output_path,
        ]

    async def rewrite(self, path: str) -> str:
        output_path = fast_start_output_path(path)
        cmd = self.build_command(path, output_path)

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self._timeout,
            )
        except FileNotFoundError as e:
            raise RewriteError(f"ffmpeg not found at {self._ffmpeg}") from e
        except subprocess.TimeoutExpired as e:
            _remove_quietly(output_path)
            raise RewriteError(
                f"ffmpeg timed out after {self._timeout}s",
                stderr=_decode_output(e.stderr),
            ) from e
        except OSError as e:
            raise RewriteError(f"ffmpeg could not be started: {e}") from e

        if result.returncode != 0:
            stderr = _decode_output(result.stderr)
            _remove_quietly(output_path)
            logger.error(
                "ffmpeg failed",
                extra={"path": path, "returncode": result.returncode, "stderr": stderr},
            )
            raise RewriteError(
                f"ffmpeg failed with exit status {result.returncode}",
                stderr=stderr,
            )

        logger.info("Rewrote video for fast start", extra={"path": path, "output": output_path})

        return output_path


def _decode_output(output) -> str:
    """Tool output as text, whether subprocess handed back str, bytes or None."""
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove partial output", extra={"path": path, "error": str(e)})


# ---------------------------------------------------------------------------
# Mock Processor for Local Development
# ---------------------------------------------------------------------------

class MockMediaProber:
    """
    Mock prober for local development without FFmpeg.

    Always reports the configured classification.
    """

    def __init__(self, classification: AspectClassification = AspectClassification.LANDSCAPE):
        self._classification = classification
        logger.info("Initialized mock media prober")

    async def probe(self, path: str) -> AspectClassification:
        return self._classification


class MockContainerRewriter:
    """Mock rewriter that copies the file byte for byte."""

    def __init__(self):
        logger.info("Initialized mock container rewriter")

    async def rewrite(self, path: str) -> str:
        output_path = fast_start_output_path(path)
        await asyncio.to_thread(shutil.copyfile, path, output_path)
        return output_path


def ffmpeg_available(ffmpeg_path: str = "ffmpeg", ffprobe_path: str = "ffprobe") -> bool:
    """True if both binaries resolve on PATH (or as given)."""
    return shutil.which(ffmpeg_path) is not None and shutil.which(ffprobe_path) is not None


def create_media_tools(
    mock_mode: bool = False,
    ffmpeg_path: str = "ffmpeg",
    ffprobe_path: str = "ffprobe",
    timeout_seconds: float = 600.0,
    mock_classification: Optional[AspectClassification] = None,
) -> tuple[MediaProber, ContainerRewriter]:
    """
    Factory function for the prober/rewriter pair.

    Args:
        mock_mode: If True, return mock tools (no FFmpeg required)
        ffmpeg_path: Path to ffmpeg binary
        ffprobe_path: Path to ffprobe binary
        timeout_seconds: Deadline applied to each invocation

    Returns:
        (MediaProber, ContainerRewriter) implementations
    """
    if mock_mode:
        return (
            MockMediaProber(mock_classification or AspectClassification.LANDSCAPE),
            MockContainerRewriter(),
        )

    return (
        FFprobeMediaProber(ffprobe_path, timeout_seconds),
        FFmpegContainerRewriter(ffmpeg_path, timeout_seconds),
    )
