"""Shared fixtures: an in-process encoder and wiring for the job pipeline."""

import asyncio
import os
from typing import Iterable, Optional

import pytest

from clipvariants.modules.job.service import JobCoordinator
from clipvariants.modules.job.storage import OutputStore
from clipvariants.modules.job.store import JobStore
from clipvariants.modules.transcoding.exceptions import EncodeError, ProbeError
from clipvariants.modules.transcoding.ffmpeg import Encoder, ProbeResult
from clipvariants.modules.transcoding.filters import TransformPlan
from clipvariants.modules.transcoding.worker import VersionWorker


class FakeEncoder(Encoder):
    """Encoder that writes a small file instead of running ffmpeg."""

    def __init__(
        self,
        width: int = 1280,
        height: int = 720,
        duration: float = 10.0,
        has_audio: bool = True,
        fail_keys: Iterable[str] = (),
        probe_error: Optional[str] = None,
        progress_steps: Iterable[float] = (25.0, 50.0, 75.0),
        delay: float = 0.0,
        write_output: bool = True,
        payload: bytes = b"\x00\x00\x00\x18ftypmp42fake-video",
    ):
        self.probe_result = ProbeResult(width, height, duration, has_audio)
        self.fail_keys = set(fail_keys)
        self.probe_error = probe_error
        self.progress_steps = list(progress_steps)
        self.delay = delay
        self.write_output = write_output
        self.payload = payload
        self.plans: list[TransformPlan] = []
        self.sources: list[str] = []

    async def probe(self, source_path: str) -> ProbeResult:
        self.sources.append(source_path)
        if self.probe_error:
            raise ProbeError(self.probe_error)
        return self.probe_result

    async def transcode(self, source_path, output_path, plan, probe, on_progress) -> None:
        self.plans.append(plan)
        for step in self.progress_steps:
            on_progress(step)
            await asyncio.sleep(0)
        if self.delay:
            await asyncio.sleep(self.delay)
        if plan.preset_key in self.fail_keys:
            raise EncodeError(f"Simulated failure for {plan.preset_key}")
        if self.write_output:
            with open(output_path, "wb") as fh:
                fh.write(self.payload)


def make_pipeline(base_dir: str, encoder: Encoder, **coordinator_kwargs):
    """Build a store, output store and coordinator rooted at ``base_dir``."""
    output_dir = os.path.join(base_dir, "processed")
    os.makedirs(output_dir, exist_ok=True)

    store = JobStore()
    output_store = OutputStore(store, output_dir)
    coordinator_kwargs.setdefault("source_delete_grace", 0)
    coordinator = JobCoordinator(store, VersionWorker(encoder), output_store, **coordinator_kwargs)
    return store, output_store, coordinator


def write_source(base_dir: str, name: str = "source.mp4") -> str:
    upload_dir = os.path.join(base_dir, "uploads")
    os.makedirs(upload_dir, exist_ok=True)
    path = os.path.join(upload_dir, name)
    with open(path, "wb") as fh:
        fh.write(b"source-bytes")
    return path


@pytest.fixture
def fake_encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture
def source_file(tmp_path) -> str:
    return write_source(str(tmp_path))
