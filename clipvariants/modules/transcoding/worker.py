"""Version worker.

Drives one encode end to end: probe, plan, transcode, stat. One invocation
has exactly one terminal outcome, an ``OutputDescriptor`` or a raised
``TranscodeError``. Retrying is left to whoever submits the job.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Optional

from clipvariants.core.metrics import ENCODE_DURATION_SECONDS
from clipvariants.modules.transcoding.exceptions import EncodeError
from clipvariants.modules.transcoding.ffmpeg import Encoder
from clipvariants.modules.transcoding.filters import (
    DEFAULT_OUTPUT_HEIGHT,
    DEFAULT_OUTPUT_WIDTH,
    build_plan,
)
from clipvariants.modules.transcoding.presets import Preset, estimate_similarity

logger = logging.getLogger(__name__)

# Progress never reaches 100 until the encoder has actually finished
MAX_IN_FLIGHT_PROGRESS = 99


@dataclass(frozen=True)
class OutputDescriptor:
    """A finished version file."""
    filename: str
    path: str
    size_bytes: int
    similarity: int

    @property
    def size_mb(self) -> str:
        return f"{self.size_bytes / (1024 * 1024):.2f} MB"


class ProgressClamp:
    """Forward encoder progress as whole, non-decreasing percentages in [0, 99]."""

    def __init__(self, on_progress: Callable[[int], None]):
        self._on_progress = on_progress
        self.last = 0

    def __call__(self, percent: float) -> None:
        value = min(MAX_IN_FLIGHT_PROGRESS, max(0, int(percent)))
        if value > self.last:
            self.last = value
            self._on_progress(value)


class VersionWorker:
    """Runs a single preset against a source file."""

    def __init__(
        self,
        encoder: Encoder,
        output_width: int = DEFAULT_OUTPUT_WIDTH,
        output_height: int = DEFAULT_OUTPUT_HEIGHT,
        timeout: Optional[float] = None,
    ):
        """Initialize worker.

        Args:
            encoder: Encoder used for probing and transcoding
            output_width: Output frame width
            output_height: Output frame height
            timeout: Seconds an encode may run before it is killed, None for no limit
        """
        self.encoder = encoder
        self.output_width = output_width
        self.output_height = output_height
        self.timeout = timeout

    async def run(
        self,
        source_path: str,
        preset: Preset,
        output_path: str,
        on_progress: Callable[[int], None],
    ) -> OutputDescriptor:
        """Produce one version of ``source_path``.

        Args:
            source_path: Uploaded source file, read only
            preset: Preset to apply
            output_path: Where the encoded file is written
            on_progress: Receives integer progress; 100 only on success

        Returns:
            OutputDescriptor of the written file

        Raises:
            ProbeError: If the source has no usable video stream
            EncodeError: If the encode fails, times out or writes nothing
        """
        probe = await self.encoder.probe(source_path)

        plan = build_plan(
            preset,
            probe.width,
            probe.height,
            output_width=self.output_width,
            output_height=self.output_height,
            sample_rate=probe.sample_rate,
        )

        started = time.perf_counter()
        clamp = ProgressClamp(on_progress)
        try:
            await asyncio.wait_for(
                self.encoder.transcode(source_path, output_path, plan, probe, clamp),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise EncodeError(f"Encode timed out after {self.timeout:g} seconds") from None
        ENCODE_DURATION_SECONDS.observe(time.perf_counter() - started)

        try:
            size_bytes = await asyncio.to_thread(os.path.getsize, output_path)
        except FileNotFoundError:
            raise EncodeError(f"Encoder finished without writing {os.path.basename(output_path)}") from None

        on_progress(100)

        logger.info(
            "Version encoded",
            extra={"preset": preset.key, "output": output_path, "size_bytes": size_bytes},
        )
        return OutputDescriptor(
            filename=os.path.basename(output_path),
            path=output_path,
            size_bytes=size_bytes,
            similarity=estimate_similarity(preset),
        )
