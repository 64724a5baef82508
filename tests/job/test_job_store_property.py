"""Property-based tests for job models and the in-memory job store."""

from datetime import timedelta

from hypothesis import given, settings, strategies as st

from clipvariants.modules.job.models import (
    Job,
    JobStatus,
    VersionState,
    VersionStatus,
    aggregate_status,
)
from clipvariants.modules.job.store import JobStore
from clipvariants.modules.transcoding.presets import list_presets
from clipvariants.modules.transcoding.worker import OutputDescriptor


terminal_status_strategy = st.sampled_from([VersionStatus.COMPLETED, VersionStatus.FAILED])
any_status_strategy = st.sampled_from(list(VersionStatus))


def make_job(count: int = 2) -> Job:
    return Job.create("/tmp/source.mp4", list_presets(count), original_filename="clip.mp4")


def make_output(key: str) -> OutputDescriptor:
    return OutputDescriptor(filename=f"{key}.mp4", path=f"/tmp/{key}.mp4", size_bytes=10, similarity=90)


class TestAggregateStatus:
    """Completed iff all versions completed; failed iff any failed once all are terminal."""

    @given(statuses=st.lists(terminal_status_strategy, min_size=1, max_size=5))
    @settings(max_examples=200)
    def test_terminal_versions_settle_to_exactly_one_outcome(self, statuses) -> None:
        versions = [VersionState(key=str(i), preset_name="p", status=s) for i, s in enumerate(statuses)]

        status = aggregate_status(versions)

        all_completed = all(s == VersionStatus.COMPLETED for s in statuses)
        any_failed = any(s == VersionStatus.FAILED for s in statuses)
        assert (status == JobStatus.COMPLETED) == all_completed
        assert (status == JobStatus.FAILED) == any_failed
        assert status != JobStatus.PROCESSING

    @given(statuses=st.lists(any_status_strategy, min_size=1, max_size=5))
    @settings(max_examples=200)
    def test_any_unfinished_version_keeps_job_processing(self, statuses) -> None:
        versions = [VersionState(key=str(i), preset_name="p", status=s) for i, s in enumerate(statuses)]

        unfinished = any(s in (VersionStatus.PENDING, VersionStatus.PROCESSING) for s in statuses)
        assert (aggregate_status(versions) == JobStatus.PROCESSING) == unfinished


class TestJobProgress:

    def test_two_versions_at_40_and_60_average_to_50(self) -> None:
        job = make_job(2)
        first, second = job.versions.values()
        first.progress = 40
        second.progress = 60

        assert job.progress == 50

    @given(values=st.lists(st.integers(min_value=0, max_value=100), min_size=1, max_size=5))
    @settings(max_examples=200)
    def test_progress_is_mean_of_versions(self, values: list[int]) -> None:
        job = make_job(len(values))
        for version, value in zip(job.versions.values(), values):
            version.progress = value

        assert job.progress == sum(values) / len(values)

    def test_new_job_starts_pending_at_zero(self) -> None:
        job = make_job(3)

        assert job.status == JobStatus.PROCESSING
        assert job.progress == 0
        assert all(v.status == VersionStatus.PENDING and v.progress == 0 for v in job.versions.values())
        assert job.total_time is None


class TestJobStore:

    def test_snapshots_are_isolated_from_the_registry(self) -> None:
        store = JobStore()
        job = make_job(2)
        store.add(job)

        snapshot = store.get(job.id)
        snapshot.versions["crisp"].progress = 77

        assert store.get(job.id).versions["crisp"].progress == 0

    @given(updates=st.lists(st.integers(min_value=0, max_value=150), max_size=30))
    @settings(max_examples=200)
    def test_progress_never_moves_backwards(self, updates: list[int]) -> None:
        store = JobStore()
        job = make_job(1)
        store.add(job)
        store.start_version(job.id, "crisp")

        observed = []
        for value in updates:
            store.update_progress(job.id, "crisp", value)
            observed.append(store.get(job.id).versions["crisp"].progress)

        assert observed == sorted(observed)
        assert all(v <= 99 for v in observed)

    def test_progress_ignored_unless_processing(self) -> None:
        store = JobStore()
        job = make_job(1)
        store.add(job)

        assert store.update_progress(job.id, "crisp", 30) is False
        assert store.get(job.id).versions["crisp"].progress == 0

    def test_completion_sets_100_and_output(self) -> None:
        store = JobStore()
        job = make_job(1)
        store.add(job)
        store.start_version(job.id, "crisp")
        store.update_progress(job.id, "crisp", 60)

        store.complete_version(job.id, "crisp", make_output("crisp"))
        version = store.get(job.id).versions["crisp"]

        assert version.status == VersionStatus.COMPLETED
        assert version.progress == 100
        assert version.output.filename == "crisp.mp4"
        # Terminal versions do not change again
        assert store.fail_version(job.id, "crisp", "late") is False

    def test_finish_job_waits_for_every_version(self) -> None:
        store = JobStore()
        job = make_job(2)
        store.add(job)
        store.start_version(job.id, "crisp")
        store.complete_version(job.id, "crisp", make_output("crisp"))

        assert store.finish_job(job.id) is None

        store.start_version(job.id, "warm")
        store.fail_version(job.id, "warm", "Simulated failure")
        finished = store.finish_job(job.id)

        assert finished.status == JobStatus.FAILED
        assert finished.error == "1 of 2 versions failed"
        assert finished.completed_at is not None
        assert finished.total_time >= 0

    def test_expired_job_ids_only_lists_old_terminal_jobs(self) -> None:
        store = JobStore()
        running = make_job(1)
        finished = make_job(1)
        store.add(running)
        store.add(finished)
        store.start_version(finished.id, "crisp")
        store.complete_version(finished.id, "crisp", make_output("crisp"))
        settled = store.finish_job(finished.id)

        later = settled.completed_at + timedelta(hours=2)

        assert store.expired_job_ids(later) == [finished.id]
        assert store.expired_job_ids(settled.completed_at) == []

    def test_remove_drops_job(self) -> None:
        store = JobStore()
        job = make_job(1)
        store.add(job)

        assert store.remove(job.id).id == job.id
        assert store.get(job.id) is None
        assert job.id not in store
        assert len(store) == 0
