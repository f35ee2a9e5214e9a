# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for job submission and the completion poll loop.
"""

import pytest

from btbackup.config import PollPolicy
from btbackup.exceptions import (
    JobFailedError,
    JobStatusError,
    JobTimeoutError,
    SubmissionError,
    UnrecognizedStateError,
)
from btbackup.jobs import (
    EXPORT_TEMPLATE_PATH,
    IMPORT_TEMPLATE_PATH,
    JobHandle,
    JobStateClass,
    await_completion,
    build_export_job,
    build_import_job,
    classify_state,
    submit_job,
)
from btbackup.paths import parse_backup_root

from conftest import FakeJobService


ROOT = parse_backup_root("gs://bucket/backups")


async def _submitted(service: FakeJobService, table_id: str = "t") -> JobHandle:
    spec = build_export_job("proj", "inst", table_id, ROOT, 100, "gs://bucket/tmp", "us-central1")
    return await submit_job(service, spec)


# ============================================================================
# Job specs
# ============================================================================

def test_build_export_job():
    spec = build_export_job(
        "proj", "inst", "events_1", ROOT, 1700000000, "gs://bucket/tmp", "europe-west1"
    )

    assert spec.job_name == "export-events_1-1700000000"
    assert spec.template_gcs_path == EXPORT_TEMPLATE_PATH
    assert spec.parameters == {
        "bigtableProject": "proj",
        "bigtableInstanceId": "inst",
        "bigtableTableId": "events_1",
        "destinationPath": "gs://bucket/backups/events_1/1700000000/",
        "filenamePrefix": "events_1:",
    }
    assert spec.temp_location == "gs://bucket/tmp"
    assert spec.location == "europe-west1"


def test_build_import_job():
    spec = build_import_job("proj", "inst", "t", ROOT, 20, "gs://bucket/tmp", "us-central1")

    assert spec.job_name == "import-t-20"
    assert spec.template_gcs_path == IMPORT_TEMPLATE_PATH
    assert spec.parameters["sourcePattern"] == "gs://bucket/backups/t/20/t:*"
    assert "destinationPath" not in spec.parameters


@pytest.mark.parametrize(
    "state,expected",
    [
        ("JOB_STATE_DONE", JobStateClass.SUCCEEDED),
        ("DONE", JobStateClass.SUCCEEDED),
        ("JOB_STATE_FAILED", JobStateClass.FAILED),
        ("JOB_STATE_CANCELLED", JobStateClass.FAILED),
        ("cancelling", JobStateClass.FAILED),
        ("JOB_STATE_RUNNING", JobStateClass.IN_PROGRESS),
        ("JOB_STATE_QUEUED", JobStateClass.IN_PROGRESS),
        ("JOB_STATE_PENDING", JobStateClass.IN_PROGRESS),
        ("JOB_STATE_DRAINED", JobStateClass.UNRECOGNIZED),
        ("JOB_STATE_UNKNOWN", JobStateClass.UNRECOGNIZED),
    ],
)
def test_classify_state(state: str, expected: JobStateClass):
    assert classify_state(state) is expected


# ============================================================================
# submit_job
# ============================================================================

@pytest.mark.asyncio
async def test_submit_job_returns_handle():
    service = FakeJobService()

    handle = await _submitted(service, "events")

    assert handle.job_id == "job-1"
    assert handle.job_name == "export-events-100"
    assert handle.table_id == "events"
    assert handle.last_state is None
    assert [spec.job_name for spec in service.submitted] == ["export-events-100"]


@pytest.mark.asyncio
async def test_submit_job_wraps_rejection():
    service = FakeJobService(reject={"export-events-100"})

    with pytest.raises(SubmissionError) as exc_info:
        await _submitted(service, "events")

    assert exc_info.value.details == {"table_id": "events", "job_name": "export-events-100"}
    assert isinstance(exc_info.value.__cause__, RuntimeError)


# ============================================================================
# await_completion
# ============================================================================

@pytest.mark.asyncio
async def test_await_completion_polls_until_done(fake_clock):
    service = FakeJobService(["JOB_STATE_QUEUED", "JOB_STATE_RUNNING", "JOB_STATE_DONE"])
    handle = await _submitted(service)

    result = await await_completion(
        service, handle, PollPolicy(), sleep=fake_clock.sleep, clock=fake_clock
    )

    assert result is handle
    assert handle.last_state == "JOB_STATE_DONE"
    assert handle.polls == 3
    assert fake_clock.sleeps == [10.0, 10.0]


@pytest.mark.asyncio
@pytest.mark.parametrize("state", ["JOB_STATE_FAILED", "JOB_STATE_CANCELLED", "JOB_STATE_CANCELLING"])
async def test_await_completion_failure_states(fake_clock, state: str):
    service = FakeJobService(["JOB_STATE_RUNNING", state])
    handle = await _submitted(service)

    with pytest.raises(JobFailedError) as exc_info:
        await await_completion(service, handle, sleep=fake_clock.sleep, clock=fake_clock)

    assert exc_info.value.state == state
    assert len(fake_clock.sleeps) == 1


@pytest.mark.asyncio
async def test_await_completion_unrecognized_states_limit(fake_clock):
    service = FakeJobService(["JOB_STATE_RUNNING", "JOB_STATE_DRAINED"])
    handle = await _submitted(service)
    policy = PollPolicy(max_unrecognized_states=3)

    with pytest.raises(UnrecognizedStateError) as exc_info:
        await await_completion(service, handle, policy, sleep=fake_clock.sleep, clock=fake_clock)

    assert exc_info.value.state == "JOB_STATE_DRAINED"
    assert handle.polls == 4


@pytest.mark.asyncio
async def test_await_completion_unrecognized_streak_resets(fake_clock):
    service = FakeJobService([
        "JOB_STATE_UNKNOWN",
        "JOB_STATE_RUNNING",
        "JOB_STATE_UNKNOWN",
        "JOB_STATE_DONE",
    ])
    handle = await _submitted(service)
    policy = PollPolicy(max_unrecognized_states=2)

    await await_completion(service, handle, policy, sleep=fake_clock.sleep, clock=fake_clock)

    assert handle.last_state == "JOB_STATE_DONE"


@pytest.mark.asyncio
async def test_await_completion_unrecognized_states_tolerated_by_default(fake_clock):
    service = FakeJobService(["JOB_STATE_UNKNOWN"] * 50 + ["JOB_STATE_DONE"])
    handle = await _submitted(service)

    await await_completion(service, handle, sleep=fake_clock.sleep, clock=fake_clock)

    assert handle.polls == 51


@pytest.mark.asyncio
async def test_await_completion_timeout(fake_clock):
    service = FakeJobService(["JOB_STATE_RUNNING"])
    handle = await _submitted(service)
    policy = PollPolicy(interval=10, timeout=25)

    with pytest.raises(JobTimeoutError) as exc_info:
        await await_completion(service, handle, policy, sleep=fake_clock.sleep, clock=fake_clock)

    # Last sleep is cut short so the final poll lands on the deadline
    assert fake_clock.sleeps == [10, 10, 5]
    assert exc_info.value.details["last_state"] == "JOB_STATE_RUNNING"


@pytest.mark.asyncio
async def test_await_completion_backoff_and_jitter(fake_clock):
    service = FakeJobService(["JOB_STATE_RUNNING"] * 4 + ["JOB_STATE_DONE"])
    handle = await _submitted(service)
    policy = PollPolicy(interval=10, max_interval=30, backoff=2.0, jitter=0.5)

    await await_completion(
        service, handle, policy, sleep=fake_clock.sleep, clock=fake_clock, rng=lambda: 1.0
    )

    # rng() == 1.0 gives the maximum +50% jitter on 10, 20, 30, 30
    assert fake_clock.sleeps == [15.0, 30.0, 45.0, 45.0]


@pytest.mark.asyncio
async def test_await_completion_wraps_status_errors(fake_clock):
    class BrokenService(FakeJobService):
        async def get_job_state(self, project_id, location, job_id):
            raise ConnectionError("connection reset")

    service = BrokenService()
    handle = await _submitted(service)

    with pytest.raises(JobStatusError):
        await await_completion(service, handle, sleep=fake_clock.sleep, clock=fake_clock)
