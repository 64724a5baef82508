"""FFmpeg encoder.

The rest of the pipeline only sees the ``Encoder`` interface (probe and
transcode-with-progress), so tests can swap in a fake without spawning
processes. ``FFmpegEncoder`` drives ffprobe/ffmpeg as asyncio subprocesses
and reads encode progress from ``-progress pipe:1``.
"""

import asyncio
import json
import logging
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from clipvariants.core.metrics import ACTIVE_ENCODES
from clipvariants.modules.transcoding.exceptions import EncodeError, ProbeError
from clipvariants.modules.transcoding.filters import DEFAULT_SAMPLE_RATE, TransformPlan

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


@dataclass(frozen=True)
class QualityProfile:
    """Fixed quality/compatibility settings shared by every version."""
    video_codec: str = "libx264"
    preset: str = "slow"
    crf: int = 18
    max_bitrate: str = "10M"
    buffer_size: str = "16M"
    pixel_format: str = "yuv420p"
    profile: str = "high"
    level: str = "4.0"
    audio_codec: str = "aac"
    audio_bitrate: str = "192k"
    audio_sample_rate: int = 48000
    audio_channels: int = 2


HIGH_QUALITY_PROFILE = QualityProfile()

# Pads odd dimensions up to even, required by yuv420p/libx264
EVEN_DIMENSION_PAD = "pad=ceil(iw/2)*2:ceil(ih/2)*2"

# Encoder stderr is kept whole up to this size, then cut from the front
ERROR_MAX_BYTES = 64 * 1024
TRUNCATION_MARKER = "[earlier encoder output truncated]"


@dataclass(frozen=True)
class ProbeResult:
    """Geometry and timing of a source file."""
    width: int
    height: int
    duration: float = 0.0
    has_audio: bool = False
    sample_rate: int = DEFAULT_SAMPLE_RATE


class Encoder(ABC):
    """External encoding engine."""

    @abstractmethod
    async def probe(self, source_path: str) -> ProbeResult:
        """Inspect a source file.

        Raises:
            ProbeError: If the file has no decodable video stream
        """
        pass

    @abstractmethod
    async def transcode(
        self,
        source_path: str,
        output_path: str,
        plan: TransformPlan,
        probe: ProbeResult,
        on_progress: ProgressCallback,
    ) -> None:
        """Encode ``source_path`` into ``output_path`` following ``plan``.

        ``on_progress`` receives raw percentages as the encode advances.

        Raises:
            EncodeError: If the encoder reports a failure
        """
        pass


def parse_probe_output(data: dict) -> ProbeResult:
    """Extract geometry, duration and audio info from ffprobe JSON output.

    Raises:
        ProbeError: If no video stream with usable dimensions is present
    """
    streams = data.get("streams") or []

    video = next(
        (
            s for s in streams
            if s.get("codec_type") == "video"
            and int(s.get("width") or 0) > 0
            and int(s.get("height") or 0) > 0
        ),
        None,
    )
    if video is None:
        raise ProbeError("No decodable video stream found in source")

    audio = next((s for s in streams if s.get("codec_type") == "audio"), None)

    duration = 0.0
    for candidate in ((data.get("format") or {}).get("duration"), video.get("duration")):
        try:
            duration = float(candidate)
            break
        except (TypeError, ValueError):
            continue

    sample_rate = DEFAULT_SAMPLE_RATE
    if audio is not None:
        try:
            sample_rate = int(audio.get("sample_rate") or DEFAULT_SAMPLE_RATE)
        except ValueError:
            sample_rate = DEFAULT_SAMPLE_RATE

    return ProbeResult(
        width=int(video["width"]),
        height=int(video["height"]),
        duration=duration,
        has_audio=audio is not None,
        sample_rate=sample_rate,
    )


def parse_progress_line(line: str, expected_duration: float) -> Optional[float]:
    """Convert one ``-progress`` line into a percentage.

    Returns None for lines that carry no timing information.
    """
    key, sep, value = line.strip().partition("=")
    if not sep or key not in ("out_time_us", "out_time_ms") or expected_duration <= 0:
        return None
    try:
        # Both keys are reported in microseconds
        out_time = int(value) / 1_000_000
    except ValueError:
        return None
    return max(0.0, out_time / expected_duration * 100)


def _error_message(stderr: bytes, returncode: Optional[int]) -> str:
    truncated = len(stderr) > ERROR_MAX_BYTES
    if truncated:
        stderr = stderr[-ERROR_MAX_BYTES:]
    text = stderr.decode("utf-8", errors="replace").strip()
    if not text:
        return f"ffmpeg exited with code {returncode}"
    return f"{TRUNCATION_MARKER}\n{text}" if truncated else text


class FFmpegEncoder(Encoder):
    """Encoder backed by the ffmpeg and ffprobe executables."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        profile: QualityProfile = HIGH_QUALITY_PROFILE,
    ):
        """Initialize encoder.

        Args:
            ffmpeg_path: Path to ffmpeg binary
            ffprobe_path: Path to ffprobe binary
            profile: Quality profile applied to every encode
        """
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path
        self.profile = profile

    def is_available(self) -> bool:
        """Check whether both executables can be found."""
        return bool(shutil.which(self.ffmpeg_path) and shutil.which(self.ffprobe_path))

    async def probe(self, source_path: str) -> ProbeResult:
        cmd = [
            self.ffprobe_path,
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            source_path,
        ]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise ProbeError(f"Probe executable not found: {self.ffprobe_path}") from None

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise ProbeError(
                stderr.decode("utf-8", errors="replace").strip()
                or f"ffprobe exited with code {proc.returncode}"
            )

        try:
            data = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise ProbeError(f"Unreadable probe output: {e}") from e

        return parse_probe_output(data)

    def build_command(
        self,
        source_path: str,
        output_path: str,
        plan: TransformPlan,
        probe: ProbeResult,
    ) -> list[str]:
        """Build the ffmpeg argument list for one version."""
        profile = self.profile
        video_chain = ",".join(plan.video_filters() + [EVEN_DIMENSION_PAD])

        cmd = [
            self.ffmpeg_path,
            "-hide_banner",
            "-nostdin",
            "-y",
            "-fflags", "+genpts",
            "-i", source_path,
            "-vf", video_chain,
        ]
        if probe.has_audio:
            cmd.extend(["-af", ",".join(plan.audio_filters())])
        else:
            cmd.append("-an")

        cmd.extend([
            "-c:v", profile.video_codec,
            "-preset", profile.preset,
            "-crf", str(profile.crf),
            "-maxrate", profile.max_bitrate,
            "-bufsize", profile.buffer_size,
            "-pix_fmt", profile.pixel_format,
            "-profile:v", profile.profile,
            "-level", profile.level,
        ])
        if probe.has_audio:
            cmd.extend([
                "-c:a", profile.audio_codec,
                "-b:a", profile.audio_bitrate,
                "-ar", str(profile.audio_sample_rate),
                "-ac", str(profile.audio_channels),
            ])
        cmd.extend([
            "-movflags", "+faststart",
            "-avoid_negative_ts", "make_zero",
            "-max_muxing_queue_size", "1024",
            "-progress", "pipe:1",
            "-nostats",
            output_path,
        ])
        return cmd

    async def transcode(
        self,
        source_path: str,
        output_path: str,
        plan: TransformPlan,
        probe: ProbeResult,
        on_progress: ProgressCallback,
    ) -> None:
        cmd = self.build_command(source_path, output_path, plan, probe)
        logger.debug("Starting ffmpeg", extra={"preset": plan.preset_key, "cmd": cmd})

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise EncodeError(f"Encoder executable not found: {self.ffmpeg_path}") from None

        # Output duration shrinks or grows with the speed change
        expected_duration = probe.duration / plan.speed if plan.speed else probe.duration

        ACTIVE_ENCODES.inc()
        # Drain stderr concurrently so a chatty encoder never blocks on a full pipe
        stderr_task = asyncio.create_task(proc.stderr.read())
        try:
            async for raw_line in proc.stdout:
                line = raw_line.decode("utf-8", errors="replace").strip()
                if line == "progress=end":
                    continue
                percent = parse_progress_line(line, expected_duration)
                if percent is not None:
                    on_progress(percent)
            stderr = await stderr_task
            await proc.wait()
        finally:
            ACTIVE_ENCODES.dec()
            # Never leave an orphaned ffmpeg behind, whatever ended the loop
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            if not stderr_task.done():
                stderr_task.cancel()

        if proc.returncode != 0:
            raise EncodeError(_error_message(stderr, proc.returncode))
