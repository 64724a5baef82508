"""Tests for request middleware helpers."""

import pytest

from clipvariants.core.middleware import endpoint_label

JOB_ID = "0123456789abcdef0123456789abcdef"


class TestEndpointLabel:

    @pytest.mark.parametrize("path,expected", [
        (f"/api/v1/jobs/{JOB_ID}", "/api/v1/jobs/{id}"),
        (f"/api/v1/jobs/{JOB_ID}/download", "/api/v1/jobs/{id}/download"),
        (f"/api/v1/jobs/{JOB_ID}/versions/warm/download", "/api/v1/jobs/{id}/versions/{key}/download"),
        ("/api/v1/presets", "/api/v1/presets"),
        ("/health", "/health"),
    ])
    def test_per_job_segments_collapse(self, path: str, expected: str) -> None:
        assert endpoint_label(path) == expected

    def test_short_hex_is_kept(self) -> None:
        assert endpoint_label("/api/v1/jobs/abc123") == "/api/v1/jobs/abc123"
