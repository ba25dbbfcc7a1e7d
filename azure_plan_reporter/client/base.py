"""Abstract base class for test management service clients."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from azure_plan_reporter.models.remote import (
    AttachmentRequest,
    RunCreateModel,
    TeamProject,
    TestAttachmentReference,
    TestCaseResultReference,
    TestPoint,
    TestRun,
)
from azure_plan_reporter.models.result import CaseResult


class TestManagementClient(ABC):
    """Operations the reporter needs from the test management service.

    Implementations raise on transport or API failures; the reporter decides
    whether a failure disables reporting or only skips one result.
    """

    __test__ = False

    @abstractmethod
    async def get_project(self, name: str) -> TeamProject | None:
        """Return the project, or None when it does not exist."""

    @abstractmethod
    async def create_run(self, payload: RunCreateModel, project: str) -> TestRun | None:
        """Create a test run in the project."""

    @abstractmethod
    async def get_test_points_by_case_ids(
        self, case_ids: Sequence[int], project: str
    ) -> Sequence[TestPoint]:
        """Return the test points of the given test cases, across all plans."""

    @abstractmethod
    async def submit_results(
        self, results: Sequence[CaseResult], project: str, run_id: int
    ) -> Sequence[TestCaseResultReference]:
        """Add results to a run and return the created result references.

        Args:
            results: Case results, each bound to a test point
            project: Project name
            run_id: Run receiving the results

        Returns:
            One reference per submitted result, in submission order

        """

    @abstractmethod
    async def upload_attachment(
        self,
        payload: AttachmentRequest,
        project: str,
        run_id: int,
        case_result_id: int,
    ) -> TestAttachmentReference:
        """Attach a file to a submitted case result."""

    @abstractmethod
    async def update_run_state(self, project: str, run_id: int, state: str) -> TestRun:
        """Change the state of a run (e.g. to "Completed")."""
