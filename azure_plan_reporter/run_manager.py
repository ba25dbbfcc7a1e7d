"""Creation, lookup and completion of the remote test run."""

import asyncio
import logging
from enum import StrEnum

from azure_plan_reporter.client.base import TestManagementClient
from azure_plan_reporter.config import ReporterConfig
from azure_plan_reporter.guard import DisablementGuard
from azure_plan_reporter.models.remote import RunCreateModel, ShallowReference

log = logging.getLogger(__name__)

RUN_CONFIGURATION_ID = 1


class RunState(StrEnum):
    """Lifecycle of the remote run."""

    UNINITIALIZED = "uninitialized"
    AWAITING_RUN_ID = "awaiting_run_id"
    ACTIVE = "active"
    COMPLETED = "completed"
    DISABLED = "disabled"


class RunManager:
    """Owns the remote run: creates it, hands out its id and completes it.

    The run id is assigned at most once. Waiters are released through a
    one-shot event that is set whether run creation succeeds or fails.
    """

    def __init__(
        self,
        *,
        config: ReporterConfig,
        client: TestManagementClient,
        guard: DisablementGuard,
    ) -> None:
        self.config = config
        self.client = client
        self.guard = guard
        self._state = RunState.UNINITIALIZED
        self._run_id: int | None = None
        self._settled = asyncio.Event()

    @property
    def state(self) -> RunState:
        if self.guard.tripped:
            return RunState.DISABLED
        return self._state

    @property
    def run_id(self) -> int | None:
        return self._run_id

    @property
    def project(self) -> str:
        return self.config.project_name or ""

    async def start(self, title: str) -> None:
        """Check the project and create the run used for this session."""
        if self.guard.tripped:
            return
        if self._state is not RunState.UNINITIALIZED:
            log.warning("Test run already started (state=%s)", self._state)
            return

        self._state = RunState.AWAITING_RUN_ID
        try:
            if not await self.ensure_project_exists(self.project):
                return
            if (run_id := await self.create_run(title)) is None:
                return
            self._run_id = run_id
            self._state = RunState.ACTIVE
            log.info("Using run %s to publish test results", run_id)
        finally:
            self._settled.set()

    async def ensure_project_exists(self, name: str) -> bool:
        """Return True if the project exists, otherwise disable reporting."""
        if self.guard.tripped:
            return False
        try:
            project = await self.client.get_project(name)
        except Exception as exc:
            self.guard.trip(
                f"Failed to get project {name}: {exc}. "
                "Check your token and orgUrl. Reporting is disabled."
            )
            return False

        if project is None:
            self.guard.trip(f"Project {name} does not exist. Reporting is disabled.")
            return False
        return True

    async def create_run(self, title: str) -> int | None:
        """Create an automated run for the configured plan and return its id."""
        if self.guard.tripped:
            return None

        payload = RunCreateModel(
            name=title,
            automated=True,
            configuration_ids=[RUN_CONFIGURATION_ID],
            plan=ShallowReference(id=str(self.config.plan_id)),
        )
        try:
            run = await self.client.create_run(payload, self.project)
        except Exception as exc:
            self.guard.trip(
                f"Failed to create test run: {exc}. "
                "Check your token and orgUrl. Reporting is disabled."
            )
            return None

        if run is None:
            self.guard.trip("Failed to create test run. Reporting is disabled.")
            return None
        return run.id

    async def wait_for_run_id(self, timeout: float) -> int | None:
        """Wait until the run id is known.

        Args:
            timeout: Maximum wait time in seconds

        Returns:
            The run id, or None when reporting is disabled. Exceeding the
            timeout disables reporting.

        """
        if self.guard.tripped or self._run_id is not None:
            return self._run_id

        try:
            async with asyncio.timeout(timeout):
                await self._settled.wait()
        except TimeoutError:
            self.guard.trip("Timeout while waiting for run id. Reporting is disabled.")
            return None

        return self._run_id

    async def finalize(self) -> None:
        """Mark the run as completed; failures are only logged."""
        if self.guard.tripped or self._run_id is None:
            return

        try:
            run = await self.client.update_run_state(
                self.project, self._run_id, "Completed"
            )
            log.info("Run %s - %s", run.id, run.state)
        except Exception as exc:
            log.error("Error on completing run %s: %s", self._run_id, exc)
        finally:
            self._state = RunState.COMPLETED
