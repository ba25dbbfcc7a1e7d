"""Azure DevOps Test API client implementation."""

import base64
import logging
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import aiohttp

from azure_plan_reporter.client.azure_devops.config import AzureDevOpsConfig
from azure_plan_reporter.client.base import TestManagementClient
from azure_plan_reporter.models.remote import (
    AttachmentRequest,
    PointsQueryResult,
    RunCreateModel,
    TeamProject,
    TestAttachmentReference,
    TestCaseResultList,
    TestCaseResultReference,
    TestPoint,
    TestRun,
)
from azure_plan_reporter.models.result import CaseResult

log = logging.getLogger(__name__)

POINTS_API_VERSION = "7.1-preview.2"
ATTACHMENTS_API_VERSION = "7.1-preview.1"


class AzureDevOpsError(RuntimeError):
    """Raised when the Azure DevOps API answers with an error status."""


def case_result_payload(result: CaseResult) -> dict[str, Any]:
    """Convert a case result to the TestCaseResult wire shape."""
    payload: dict[str, Any] = {
        "testCase": {"id": result.case_id},
        "testPoint": {"id": str(result.point_id)},
        "testCaseTitle": result.title,
        "outcome": result.outcome,
        "state": result.state,
        "durationInMs": result.duration_ms,
    }
    if result.error_message is not None:
        payload["errorMessage"] = result.error_message
    if result.stack_trace is not None:
        payload["stackTrace"] = result.stack_trace
    return payload


@dataclass(frozen=True, kw_only=True)
class AzureDevOpsClient(TestManagementClient):
    """Client for the Test API of one Azure DevOps organization."""

    config: AzureDevOpsConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: AzureDevOpsConfig
    ) -> AsyncGenerator["AzureDevOpsClient", None]:
        """Create client with managed session lifecycle."""
        # Azure DevOps uses Basic Auth with empty username and PAT as password
        auth_string = f":{config.token.get_secret_value()}"
        auth_bytes = base64.b64encode(auth_string.encode("ascii")).decode("ascii")
        headers = {
            "Authorization": f"Basic {auth_bytes}",
            "Content-Type": "application/json",
        }
        async with aiohttp.ClientSession(headers=headers) as session:
            yield cls(config=config, session=session)

    def _url(self, path: str, *, project: str | None = None) -> str:
        base = self.config.org_url.rstrip("/")
        if project is not None:
            base = f"{base}/{quote(project, safe='')}"
        return f"{base}/_apis/{path}"

    async def _send(
        self,
        method: str,
        url: str,
        action: str,
        *,
        api_version: str | None = None,
        json: Any = None,
    ) -> Any:
        params = {"api-version": api_version or self.config.api_version}
        async with self.session.request(
            method, url, params=params, json=json
        ) as response:
            if response.status != 200:
                text = await response.text()
                raise AzureDevOpsError(
                    f"Failed to {action}: {response.status} {text}"
                )
            return await response.json()

    async def get_project(self, name: str) -> TeamProject | None:
        """Get project by name, None when the organization has no such project."""
        url = self._url(f"projects/{quote(name, safe='')}")
        params = {"api-version": self.config.api_version}

        async with self.session.get(url, params=params) as response:
            if response.status == 404:
                return None
            if response.status != 200:
                text = await response.text()
                raise AzureDevOpsError(
                    f"Failed to get project: {response.status} {text}"
                )
            data = await response.json()

        return TeamProject.model_validate(data)

    async def create_run(self, payload: RunCreateModel, project: str) -> TestRun | None:
        """Create a test run and return it."""
        data = await self._send(
            "POST",
            self._url("test/runs", project=project),
            "create test run",
            json=payload.model_dump(by_alias=True, exclude_none=True, mode="json"),
        )
        if not data:
            return None

        run = TestRun.model_validate(data)
        log.info("Created test run %s (%s)", run.id, run.name)
        return run

    async def get_test_points_by_case_ids(
        self, case_ids: Sequence[int], project: str
    ) -> Sequence[TestPoint]:
        """Query test points of the given test cases."""
        data = await self._send(
            "POST",
            self._url("test/points", project=project),
            "query test points",
            api_version=POINTS_API_VERSION,
            json={"pointsFilter": {"testcaseIds": list(case_ids)}},
        )
        return PointsQueryResult.model_validate(data).points or []

    async def submit_results(
        self, results: Sequence[CaseResult], project: str, run_id: int
    ) -> Sequence[TestCaseResultReference]:
        """Add case results to a run."""
        data = await self._send(
            "POST",
            self._url(f"test/runs/{run_id}/results", project=project),
            "add test results",
            json=[case_result_payload(result) for result in results],
        )
        return TestCaseResultList.model_validate(data).value or []

    async def upload_attachment(
        self,
        payload: AttachmentRequest,
        project: str,
        run_id: int,
        case_result_id: int,
    ) -> TestAttachmentReference:
        """Attach a file to a case result."""
        data = await self._send(
            "POST",
            self._url(
                f"test/runs/{run_id}/results/{case_result_id}/attachments",
                project=project,
            ),
            "upload attachment",
            api_version=ATTACHMENTS_API_VERSION,
            json=payload.model_dump(by_alias=True, exclude_none=True, mode="json"),
        )
        return TestAttachmentReference.model_validate(data)

    async def update_run_state(self, project: str, run_id: int, state: str) -> TestRun:
        """Update the state of a run."""
        data = await self._send(
            "PATCH",
            self._url(f"test/runs/{run_id}", project=project),
            "update test run",
            json={"state": state},
        )
        return TestRun.model_validate(data)
