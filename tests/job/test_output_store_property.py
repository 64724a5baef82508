"""Tests for single and bundled downloads."""

import asyncio
import os
import zipfile

import pytest

from conftest import FakeEncoder, make_pipeline

from clipvariants.modules.job.exceptions import (
    JobNotFoundError,
    VersionNotFoundError,
    VersionNotReadyError,
)
from clipvariants.modules.job.models import JobStatus


class TestDownload:

    def test_unknown_job_is_not_found(self, tmp_path) -> None:
        _, output_store, _ = make_pipeline(str(tmp_path), FakeEncoder())

        with pytest.raises(JobNotFoundError):
            output_store.download("f" * 32, "crisp")

    @pytest.mark.asyncio
    async def test_unknown_version_is_not_found(self, tmp_path, source_file) -> None:
        _, output_store, coordinator = make_pipeline(str(tmp_path), FakeEncoder())
        job_id = await coordinator.submit(source_file, version_count=1)
        await coordinator.wait(job_id)

        with pytest.raises(VersionNotFoundError):
            output_store.download(job_id, "vivid")

    @pytest.mark.asyncio
    async def test_unfinished_version_is_not_ready(self, tmp_path, source_file) -> None:
        _, output_store, coordinator = make_pipeline(str(tmp_path), FakeEncoder(delay=0.05))
        job_id = await coordinator.submit(source_file, version_count=2)

        with pytest.raises(VersionNotReadyError):
            output_store.download(job_id, "crisp")
        with pytest.raises(VersionNotReadyError):
            await output_store.download_all(job_id)

        await coordinator.wait(job_id)

    @pytest.mark.asyncio
    async def test_failed_version_is_not_ready(self, tmp_path, source_file) -> None:
        _, output_store, coordinator = make_pipeline(str(tmp_path), FakeEncoder(fail_keys={"crisp"}))
        job_id = await coordinator.submit(source_file, version_count=1)
        await coordinator.wait(job_id)

        with pytest.raises(VersionNotReadyError):
            output_store.download(job_id, "crisp")

    @pytest.mark.asyncio
    async def test_completed_version_resolves_to_its_file(self, tmp_path, source_file) -> None:
        _, output_store, coordinator = make_pipeline(str(tmp_path), FakeEncoder())
        job_id = await coordinator.submit(source_file, version_count=2)
        await coordinator.wait(job_id)

        target = output_store.download(job_id, "warm")

        assert target.path == output_store.path_for(job_id, "warm")
        assert target.filename == f"{job_id}_warm.mp4"
        assert target.media_type == "video/mp4"
        assert target.version_key == "warm"

    @pytest.mark.asyncio
    async def test_vanished_file_is_not_found(self, tmp_path, source_file) -> None:
        _, output_store, coordinator = make_pipeline(str(tmp_path), FakeEncoder())
        job_id = await coordinator.submit(source_file, version_count=1)
        await coordinator.wait(job_id)
        os.remove(output_store.path_for(job_id, "crisp"))

        with pytest.raises(VersionNotFoundError):
            output_store.download(job_id, "crisp")


class TestDownloadAll:

    @pytest.mark.asyncio
    async def test_three_versions_bundle_into_three_named_entries(self, tmp_path, source_file) -> None:
        _, output_store, coordinator = make_pipeline(str(tmp_path), FakeEncoder())

        job_id = await coordinator.submit(source_file, version_count=3)
        job = coordinator.get_status(job_id)
        while job.status == JobStatus.PROCESSING:
            await asyncio.sleep(0.01)
            job = coordinator.get_status(job_id)
        assert job.status == JobStatus.COMPLETED

        target = await output_store.download_all(job_id)

        assert target.media_type == "application/zip"
        assert target.version_key is None
        with zipfile.ZipFile(target.path) as archive:
            assert sorted(archive.namelist()) == ["cool.mp4", "crisp.mp4", "warm.mp4"]

    @pytest.mark.asyncio
    async def test_partial_success_bundles_completed_versions_only(self, tmp_path, source_file) -> None:
        _, output_store, coordinator = make_pipeline(str(tmp_path), FakeEncoder(fail_keys={"cool"}))

        job_id = await coordinator.submit(source_file, version_count=3)
        await coordinator.wait(job_id)
        target = await output_store.download_all(job_id)

        with zipfile.ZipFile(target.path) as archive:
            assert sorted(archive.namelist()) == ["crisp.mp4", "warm.mp4"]

    @pytest.mark.asyncio
    async def test_nothing_completed_is_not_ready(self, tmp_path, source_file) -> None:
        _, output_store, coordinator = make_pipeline(
            str(tmp_path), FakeEncoder(fail_keys={"crisp", "warm"})
        )

        job_id = await coordinator.submit(source_file, version_count=2)
        await coordinator.wait(job_id)

        with pytest.raises(VersionNotReadyError):
            await output_store.download_all(job_id)

    @pytest.mark.asyncio
    async def test_single_version_job_degenerates_to_single_download(self, tmp_path, source_file) -> None:
        _, output_store, coordinator = make_pipeline(str(tmp_path), FakeEncoder())

        job_id = await coordinator.submit(source_file, version_count=1)
        await coordinator.wait(job_id)
        target = await output_store.download_all(job_id)

        assert target.version_key == "crisp"
        assert target.path == output_store.path_for(job_id, "crisp")
        assert not os.path.exists(output_store.archive_path_for(job_id))

    @pytest.mark.asyncio
    async def test_unknown_job_is_not_found(self, tmp_path) -> None:
        _, output_store, _ = make_pipeline(str(tmp_path), FakeEncoder())

        with pytest.raises(JobNotFoundError):
            await output_store.download_all("a" * 32)

    @pytest.mark.asyncio
    async def test_concurrent_bundle_requests_share_one_archive(self, tmp_path, source_file) -> None:
        encoder = FakeEncoder(payload=os.urandom(4 * 1024 * 1024))
        _, output_store, coordinator = make_pipeline(str(tmp_path), encoder)
        job_id = await coordinator.submit(source_file, version_count=3)
        await coordinator.wait(job_id)

        results = await asyncio.gather(
            *(output_store.download_all(job_id) for _ in range(6)),
            return_exceptions=True,
        )

        assert [r for r in results if isinstance(r, BaseException)] == []
        assert {r.path for r in results} == {output_store.archive_path_for(job_id)}
        with zipfile.ZipFile(output_store.archive_path_for(job_id)) as archive:
            assert archive.testzip() is None
            assert sorted(archive.namelist()) == ["cool.mp4", "crisp.mp4", "warm.mp4"]
        assert not [name for name in os.listdir(output_store.output_dir) if name.endswith(".part")]
