# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for btbackup tests.

Provides in-memory fakes for the table-metadata, object-storage and
batch-execution services, plus a fake clock for poll loops.
"""

import itertools
from typing import Dict, Iterable, List

import pytest

from btbackup.clients import Clients
from btbackup.exceptions import StorageError
from btbackup.pagination import Page


def _paginate(items: List[str], token: str | None, page_size: int) -> Page[str]:
    start = int(token) if token else 0
    end = start + page_size
    next_token = str(end) if end < len(items) else ""
    return Page(items=items[start:end], next_page_token=next_token)


def _paginate_by_name(names: List[str], token: str | None, page_size: int) -> Page[str]:
    # Token is the last name returned, so deletes between pages do not shift results
    remaining = [n for n in names if token is None or n > token]
    items = remaining[:page_size]
    next_token = items[-1] if len(remaining) > page_size else ""
    return Page(items=items, next_page_token=next_token)


class FakeTableAdmin:
    """Table-metadata service returning a fixed table list, page by page."""

    def __init__(self, table_ids: Iterable[str] = (), page_size: int = 2):
        self.table_ids = list(table_ids)
        self.page_size = page_size
        self.calls: List[tuple] = []

    async def list_tables(self, parent: str, page_token: str | None) -> Page[str]:
        self.calls.append((parent, page_token))
        names = [f"{parent}/tables/{table_id}" for table_id in self.table_ids]
        return _paginate(names, page_token, self.page_size)


class FakeObjectStore:
    """Object-storage service over an in-memory bucket -> names mapping."""

    def __init__(
        self,
        objects: Dict[str, Iterable[str]] | None = None,
        page_size: int = 2,
        fail_delete_after: int | None = None,
        fail_listing: bool = False,
    ):
        self.objects: Dict[str, List[str]] = {
            bucket: list(names) for bucket, names in (objects or {}).items()
        }
        self.page_size = page_size
        self.fail_delete_after = fail_delete_after
        self.fail_listing = fail_listing
        self.list_calls: List[tuple] = []
        self.deleted: List[tuple] = []

    async def list_objects(
        self, bucket: str, prefix: str, page_token: str | None
    ) -> Page[str]:
        self.list_calls.append((bucket, prefix, page_token))
        if self.fail_listing:
            raise StorageError("listing unavailable", details={"bucket": bucket})
        names = sorted(n for n in self.objects.get(bucket, []) if n.startswith(prefix))
        return _paginate_by_name(names, page_token, self.page_size)

    async def delete_object(self, bucket: str, name: str) -> None:
        if self.fail_delete_after is not None and len(self.deleted) >= self.fail_delete_after:
            raise StorageError("delete rejected", details={"bucket": bucket, "name": name})
        self.objects[bucket].remove(name)
        self.deleted.append((bucket, name))


class FakeJobService:
    """
    Batch-execution service with scripted job states.

    Each created job replays `states` on successive polls, repeating the
    last one. Job names listed in `reject` fail at submission.
    """

    def __init__(self, states: Iterable[str] = ("JOB_STATE_DONE",), reject: Iterable[str] = ()):
        self.states = list(states)
        self.reject = set(reject)
        self.submitted: List = []
        self.polls: Dict[str, int] = {}
        self._ids = itertools.count(1)

    async def create_job_from_template(self, spec) -> str:
        if spec.job_name in self.reject:
            raise RuntimeError("quota exceeded")
        self.submitted.append(spec)
        job_id = f"job-{next(self._ids)}"
        self.polls[job_id] = 0
        return job_id

    async def get_job_state(self, project_id: str, location: str, job_id: str) -> str:
        index = self.polls[job_id]
        self.polls[job_id] += 1
        return self.states[min(index, len(self.states) - 1)]


class FakeClock:
    """Monotonic clock advanced only by its own sleep()."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


@pytest.fixture
def table_admin() -> FakeTableAdmin:
    return FakeTableAdmin()


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def job_service() -> FakeJobService:
    return FakeJobService()


@pytest.fixture
def clients(table_admin, object_store, job_service) -> Clients:
    """Clients bundle wired to the fakes."""
    return Clients(tables=table_admin, storage=object_store, jobs=job_service)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
