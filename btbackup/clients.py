# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
External service clients - Table metadata, object storage and batch jobs.

The orchestration code talks to three services through small protocols
so that tests can substitute in-memory fakes. The Google Cloud
implementations wrap the official (blocking) SDKs and run each call in a
worker thread with asyncio.to_thread.

Any failure of a storage or table-listing call, including transport and
credential errors, is raised as StorageError or TableListingError.

SDK clients are created on first use, so building a Clients bundle never
touches credentials for services a command does not call.
"""

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import structlog
from google.api_core import exceptions as gax

from btbackup.exceptions import StorageError, TableListingError
from btbackup.pagination import Page

if TYPE_CHECKING:
    from btbackup.jobs import JobSpec

logger = structlog.get_logger()


# ============================================================================
# Protocols
# ============================================================================

class TableAdmin(Protocol):
    """Table-metadata service."""

    async def list_tables(self, parent: str, page_token: str | None) -> Page[str]:
        """Return one page of fully qualified table names under `parent`."""
        ...


class ObjectStore(Protocol):
    """Object-storage service."""

    async def list_objects(
        self, bucket: str, prefix: str, page_token: str | None
    ) -> Page[str]:
        """Return one page of object names starting with `prefix`."""
        ...

    async def delete_object(self, bucket: str, name: str) -> None:
        """Delete one object. Deleting a missing object is not an error."""
        ...


class JobService(Protocol):
    """Batch-execution service."""

    async def create_job_from_template(self, spec: "JobSpec") -> str:
        """Launch a templated job and return its job id."""
        ...

    async def get_job_state(self, project_id: str, location: str, job_id: str) -> str:
        """Return the current state name of a job, e.g. "JOB_STATE_RUNNING"."""
        ...


@dataclass
class Clients:
    """The service clients one command runs against."""

    tables: TableAdmin
    storage: ObjectStore
    jobs: JobService


# ============================================================================
# Google Cloud implementations
# ============================================================================

class BigtableTableAdmin:
    """TableAdmin backed by the Cloud Bigtable admin API."""

    def __init__(self, client: Any = None):
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            from google.cloud import bigtable_admin_v2

            self._client = bigtable_admin_v2.BigtableTableAdminClient()
        return self._client

    async def list_tables(self, parent: str, page_token: str | None) -> Page[str]:
        from google.cloud import bigtable_admin_v2

        def _fetch() -> Page[str]:
            request = bigtable_admin_v2.ListTablesRequest(
                parent=parent,
                page_token=page_token or "",
                view=bigtable_admin_v2.Table.View.NAME_ONLY,
            )
            pager = self.client.list_tables(request=request)
            response = next(iter(pager.pages))
            return Page(
                items=[table.name for table in response.tables],
                next_page_token=response.next_page_token,
            )

        try:
            return await asyncio.to_thread(_fetch)
        except Exception as e:
            raise TableListingError(
                f"Failed to list tables: {e}",
                details={"parent": parent},
            ) from e


class GcsObjectStore:
    """ObjectStore backed by Google Cloud Storage."""

    def __init__(self, client: Any = None, project: str | None = None):
        self._client = client
        self._project = project

    @property
    def client(self) -> Any:
        if self._client is None:
            from google.cloud import storage

            self._client = storage.Client(project=self._project)
        return self._client

    async def list_objects(
        self, bucket: str, prefix: str, page_token: str | None
    ) -> Page[str]:
        def _fetch() -> Page[str]:
            iterator = self.client.list_blobs(
                bucket,
                prefix=prefix or None,
                page_token=page_token,
            )
            page = next(iterator.pages, None)
            names = [blob.name for blob in page] if page is not None else []
            return Page(items=names, next_page_token=iterator.next_page_token or "")

        try:
            return await asyncio.to_thread(_fetch)
        except Exception as e:
            raise StorageError(
                f"Failed to list objects: {e}",
                details={"bucket": bucket, "prefix": prefix},
            ) from e

    async def delete_object(self, bucket: str, name: str) -> None:
        def _delete() -> None:
            self.client.bucket(bucket).blob(name).delete()

        try:
            await asyncio.to_thread(_delete)
        except gax.NotFound:
            logger.debug("object_already_deleted", bucket=bucket, name=name)
        except Exception as e:
            raise StorageError(
                f"Failed to delete object: {e}",
                details={"bucket": bucket, "name": name},
            ) from e


class DataflowJobService:
    """JobService backed by Dataflow classic templates."""

    def __init__(self, templates_client: Any = None, jobs_client: Any = None):
        self._templates_client = templates_client
        self._jobs_client = jobs_client

    @property
    def templates_client(self) -> Any:
        if self._templates_client is None:
            from google.cloud import dataflow_v1beta3

            self._templates_client = dataflow_v1beta3.TemplatesServiceClient()
        return self._templates_client

    @property
    def jobs_client(self) -> Any:
        if self._jobs_client is None:
            from google.cloud import dataflow_v1beta3

            self._jobs_client = dataflow_v1beta3.JobsV1Beta3Client()
        return self._jobs_client

    async def create_job_from_template(self, spec: "JobSpec") -> str:
        from google.cloud import dataflow_v1beta3

        request = dataflow_v1beta3.CreateJobFromTemplateRequest(
            project_id=spec.project_id,
            job_name=spec.job_name,
            gcs_path=spec.template_gcs_path,
            parameters=dict(spec.parameters),
            environment=dataflow_v1beta3.RuntimeEnvironment(
                temp_location=spec.temp_location,
            ),
            location=spec.location,
        )
        job = await asyncio.to_thread(
            self.templates_client.create_job_from_template, request=request
        )
        return job.id

    async def get_job_state(self, project_id: str, location: str, job_id: str) -> str:
        from google.cloud import dataflow_v1beta3

        request = dataflow_v1beta3.GetJobRequest(
            project_id=project_id,
            job_id=job_id,
            location=location,
        )
        job = await asyncio.to_thread(self.jobs_client.get_job, request=request)
        state = job.current_state
        return getattr(state, "name", str(state))


def build_clients(project_id: str | None = None) -> Clients:
    """
    Build the Google Cloud backed clients.

    Credentials come from Application Default Credentials; nothing is
    contacted until the first call.
    """
    return Clients(
        tables=BigtableTableAdmin(),
        storage=GcsObjectStore(project=project_id),
        jobs=DataflowJobService(),
    )
