"""Integration tests for the reporter lifecycle with the Azure DevOps client."""

from pathlib import Path

import pytest
from aioresponses import aioresponses as aioresponses_cls
from yarl import URL

from azure_plan_reporter.models.result import TestCase, TestError
from azure_plan_reporter.reporter import ReporterLifecycle
from azure_plan_reporter.testing.azure.payloads import (
    attachment_reference,
    point_payload,
    points_query,
    results_response,
    run_payload,
    team_project,
)
from azure_plan_reporter.testing.factories import (
    AttachmentFactory,
    TestResultFactory,
    reporter_config,
)

ORG_URL = "http://azure.test/test-org"
PROJECT_URL = f"{ORG_URL}/test-project/_apis"
RUNS_URL = f"{PROJECT_URL}/test/runs?api-version=7.1"
POINTS_URL = f"{PROJECT_URL}/test/points?api-version=7.1-preview.2"
RESULTS_URL = f"{PROJECT_URL}/test/runs/1001/results?api-version=7.1"
RUN_URL = f"{PROJECT_URL}/test/runs/1001?api-version=7.1"


@pytest.fixture
def mock_run(aioresponses: aioresponses_cls) -> aioresponses_cls:
    """Serve the project lookup, run creation and run completion."""
    aioresponses.get(
        f"{ORG_URL}/_apis/projects/test-project?api-version=7.1",
        status=200,
        payload=team_project(),
    )
    aioresponses.post(RUNS_URL, status=200, payload=run_payload(run_id=1001))
    aioresponses.patch(RUN_URL, status=200, payload=run_payload(state="Completed"))
    return aioresponses


async def test_publishes_session(mock_run: aioresponses_cls) -> None:
    """Creates a run, publishes matched results and completes the run."""
    mock_run.post(
        POINTS_URL,
        status=200,
        payload=points_query([point_payload(point_id=501, case_id=1234)]),
    )
    mock_run.post(RESULTS_URL, status=200, payload=results_response(100000))

    async with ReporterLifecycle.from_config(reporter_config()) as reporter:
        await reporter.on_begin()
        await reporter.on_test_end(
            TestCase(
                id="tests/test_login.py::test_login[1234]", title="test_login[1234]"
            ),
            TestResultFactory.build(
                status="failed",
                duration_ms=42.0,
                error=TestError(message="\x1b[31mboom\x1b[0m", stack="trace"),
            ),
        )
        await reporter.on_test_end(
            TestCase(id="tests/test_misc.py::test_misc", title="test_misc"),
            TestResultFactory.build(),
        )
        await reporter.on_end()

    run_call = mock_run.requests[("POST", URL(RUNS_URL))][0]
    assert run_call.kwargs["json"]["name"] == "Playwright Test Run"
    assert run_call.kwargs["json"]["plan"] == {"id": "7"}

    (results_call,) = mock_run.requests[("POST", URL(RESULTS_URL))]
    (payload,) = results_call.kwargs["json"]
    assert payload["testPoint"] == {"id": "501"}
    assert payload["outcome"] == "Failed"
    assert payload["errorMessage"] == "test_login[1234]: boom"

    (complete_call,) = mock_run.requests[("PATCH", URL(RUN_URL))]
    assert complete_call.kwargs["json"] == {"state": "Completed"}


async def test_uploads_screenshot(mock_run: aioresponses_cls, tmp_path: Path) -> None:
    """Uploads selected artifacts to the created case result."""
    screenshot = tmp_path / "login.png"
    screenshot.write_bytes(b"hello")
    attachments_url = (
        f"{PROJECT_URL}/test/runs/1001/results/100000/attachments"
        "?api-version=7.1-preview.1"
    )
    mock_run.post(POINTS_URL, status=200, payload=points_query([point_payload()]))
    mock_run.post(RESULTS_URL, status=200, payload=results_response(100000))
    mock_run.post(attachments_url, status=200, payload=attachment_reference())

    config = reporter_config(upload_attachments=True)
    async with ReporterLifecycle.from_config(config) as reporter:
        await reporter.on_begin()
        await reporter.on_test_end(
            TestCase(id="test_login[1234]", title="test_login[1234]"),
            TestResultFactory.build(
                attachments=(
                    AttachmentFactory.build(path=screenshot),
                    AttachmentFactory.build(
                        name="trace", content_type="application/zip"
                    ),
                )
            ),
        )
        await reporter.on_end()

    (upload_call,) = mock_run.requests[("POST", URL(attachments_url))]
    body = upload_call.kwargs["json"]
    assert body["stream"] == "aGVsbG8="
    assert body["fileName"].startswith("screenshot-")
    assert body["fileName"].endswith(".png")


async def test_invalid_token_disables_reporting(
    aioresponses: aioresponses_cls,
) -> None:
    """Rejected credentials disable reporting without raising."""
    aioresponses.get(
        f"{ORG_URL}/_apis/projects/test-project?api-version=7.1",
        status=401,
        body="Unauthorized",
    )

    async with ReporterLifecycle.from_config(reporter_config()) as reporter:
        await reporter.on_begin()
        await reporter.on_test_end(
            TestCase(id="test_login[1234]", title="test_login[1234]"),
            TestResultFactory.build(),
        )
        await reporter.on_end()

    assert reporter.guard.tripped
    assert ("POST", URL(RUNS_URL)) not in aioresponses.requests
