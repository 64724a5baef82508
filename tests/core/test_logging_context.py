"""Tests for correlation and job context on log records."""

import json
import logging
import sys

import pytest

from conftest import FakeEncoder, make_pipeline

from clipvariants.core.logging import (
    JobContextFilter,
    StructuredFormatter,
    bind_job_id,
    clear_correlation_id,
    job_id_var,
    set_correlation_id,
)

SERVICE_LOGGER = "clipvariants.modules.job.service"


def make_record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.makeLogRecord({"name": "test", "levelname": "INFO", "msg": message})
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJobContextFilter:

    def test_bound_job_id_is_stamped(self) -> None:
        token = job_id_var.set("a" * 32)
        try:
            record = make_record()
            JobContextFilter().filter(record)
        finally:
            job_id_var.reset(token)

        assert record.job_id == "a" * 32
        assert record.job_tag == f" [job {'a' * 32}]"

    def test_explicit_job_id_wins(self) -> None:
        token = job_id_var.set("a" * 32)
        try:
            record = make_record(job_id="b" * 32)
            JobContextFilter().filter(record)
        finally:
            job_id_var.reset(token)

        assert record.job_id == "b" * 32

    def test_no_job_leaves_tag_empty(self) -> None:
        record = make_record()
        JobContextFilter().filter(record)

        assert record.job_id is None
        assert record.job_tag == ""


class TestStructuredFormatter:

    def test_context_is_top_level_and_extras_nested(self) -> None:
        record = make_record("Version warm failed", preset="warm", job_id="c" * 32, correlation_id="req-7")
        JobContextFilter().filter(record)

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["message"] == "Version warm failed"
        assert payload["job_id"] == "c" * 32
        assert payload["correlation_id"] == "req-7"
        assert payload["extra"] == {"preset": "warm"}

    def test_exception_carries_stack_trace(self) -> None:
        try:
            raise RuntimeError("encoder crashed")
        except RuntimeError:
            record = logging.LogRecord("test", logging.ERROR, __file__, 1, "boom", None, sys.exc_info())
        JobContextFilter().filter(record)

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["exception"]["type"] == "RuntimeError"
        assert payload["exception"]["message"] == "encoder crashed"
        assert any("encoder crashed" in line for line in payload["exception"]["stack_trace"])


class TestJobTaskContext:

    @pytest.mark.asyncio
    async def test_version_failure_carries_job_and_request_ids(self, tmp_path, source_file, caplog) -> None:
        _, _, coordinator = make_pipeline(str(tmp_path), FakeEncoder(fail_keys={"warm"}))
        set_correlation_id("req-42")
        try:
            with caplog.at_level(logging.INFO, logger=SERVICE_LOGGER):
                job_id = await coordinator.submit(source_file, version_count=2)
                await coordinator.wait(job_id)
        finally:
            clear_correlation_id()

        failures = [r for r in caplog.records if r.getMessage().startswith("Version warm failed")]
        assert len(failures) == 1
        assert failures[0].levelno == logging.WARNING
        assert failures[0].job_id == job_id
        assert failures[0].preset == "warm"
        assert failures[0].correlation_id == "req-42"

        finished = [r for r in caplog.records if r.getMessage() == "Job finished"]
        assert finished[0].job_id == job_id
        assert finished[0].status == "failed"

    @pytest.mark.asyncio
    async def test_job_binding_does_not_leak_into_caller(self, tmp_path, source_file) -> None:
        _, _, coordinator = make_pipeline(str(tmp_path), FakeEncoder())

        job_id = await coordinator.submit(source_file, version_count=1)
        await coordinator.wait(job_id)

        assert job_id_var.get() is None

    def test_bind_job_id_sets_context(self) -> None:
        token = job_id_var.set(None)
        try:
            bind_job_id("d" * 32)
            assert job_id_var.get() == "d" * 32
        finally:
            job_id_var.reset(token)
