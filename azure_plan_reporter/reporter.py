"""Reporter lifecycle driven by the run-begin, test-end and run-end events."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from azure_plan_reporter.attachments import AttachmentUploader
from azure_plan_reporter.case_ids import extract_case_ids, parse_case_id
from azure_plan_reporter.client.azure_devops import AzureDevOpsClient, AzureDevOpsConfig
from azure_plan_reporter.client.base import TestManagementClient
from azure_plan_reporter.config import ReporterConfig
from azure_plan_reporter.coordinator import PublicationKey, PublishCoordinator
from azure_plan_reporter.errors import (
    PublicationError,
    TestPointNotFoundError,
    UnsupportedStatusError,
)
from azure_plan_reporter.guard import DisablementGuard
from azure_plan_reporter.models.result import (
    CaseResult,
    TestCase,
    TestResult,
    map_outcome,
)
from azure_plan_reporter.run_manager import RunManager
from azure_plan_reporter.test_points import TestPointResolver

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ReporterLifecycle:
    """Publishes test results to a test run of an Azure DevOps test plan.

    None of the entry points raise: remote failures either disable reporting
    for the rest of the session or skip a single result.
    """

    config: ReporterConfig
    client: TestManagementClient
    guard: DisablementGuard
    run_manager: RunManager
    resolver: TestPointResolver
    coordinator: PublishCoordinator
    uploader: AttachmentUploader

    @classmethod
    def create(
        cls, config: ReporterConfig, client: TestManagementClient
    ) -> "ReporterLifecycle":
        """Wire the reporter components around a client."""
        guard = DisablementGuard.for_config(config)
        project = config.project_name or ""

        if config.upload_attachments and config.attachment_types is None:
            log.warning(
                "'attachmentsType' is not set. "
                "Attachments Type will be set to 'screenshot' by default."
            )

        return cls(
            config=config,
            client=client,
            guard=guard,
            run_manager=RunManager(config=config, client=client, guard=guard),
            resolver=TestPointResolver(client=client, project=project),
            coordinator=PublishCoordinator(),
            uploader=AttachmentUploader(
                client=client,
                project=project,
                attachment_types=config.effective_attachment_types,
            ),
        )

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: ReporterConfig
    ) -> AsyncGenerator["ReporterLifecycle", None]:
        """Create a reporter talking to Azure DevOps, with managed session."""
        client_config = AzureDevOpsConfig.from_reporter_config(config)
        async with AzureDevOpsClient.from_config(client_config) as client:
            yield cls.create(config, client)

    @property
    def prints_to_stdio(self) -> bool:
        return True

    async def on_begin(self) -> None:
        """Create the run that receives the results of this session."""
        if self.guard.tripped:
            return
        await self.run_manager.start(self.config.run_name)

    async def on_test_end(self, test: TestCase, result: TestResult) -> None:
        """Publish the result of a finished test."""
        await self.run_manager.wait_for_run_id(self.config.run_id_timeout)
        if self.guard.tripped:
            return

        log.info("Test %s - %s", test.title, result.status)
        await self.publish_case_result(test, result)

    async def on_end(self) -> None:
        """Wait for pending results, then complete the run."""
        await self.run_manager.wait_for_run_id(self.config.run_id_timeout)

        await self.coordinator.drain(
            poll_interval=self.config.poll_interval,
            timeout=self.config.drain_timeout,
        )

        if self.coordinator.published_count == 0 and self.run_manager.run_id is None:
            log.info(
                "No test cases were matched. "
                "Ensure that your tests are declared correctly."
            )
            return

        if self.guard.tripped:
            return

        await self.run_manager.finalize()

    async def publish_case_result(self, test: TestCase, result: TestResult) -> None:
        """Submit one result; tests without a case id tag are not published."""
        if not (case_ids := extract_case_ids(test.title)):
            return

        key = PublicationKey(case_ids=case_ids, test_id=test.id, retry=result.retry)
        async with self.coordinator.track(key):
            log.info("Start publishing: %s", test.title)
            try:
                await self._submit(test, result, case_ids)
            except UnsupportedStatusError as exc:
                log.info("%s", exc)
                return
            except PublicationError as exc:
                log.error("%s", exc)
                return
            except Exception as exc:
                log.error(
                    "Failed to publish result of %s: %s", test.title, exc, exc_info=exc
                )
                return

            self.coordinator.record_published()
            log.info("Result published: %s", test.title)

    async def _submit(self, test: TestCase, result: TestResult, case_ids: str) -> None:
        run_id = self.run_manager.run_id
        if run_id is None or self.config.plan_id is None:
            raise PublicationError(f"No active run to publish {test.title}")

        if (outcome := map_outcome(result.status)) is None:
            raise UnsupportedStatusError(
                f"Status '{result.status}' of {test.title} is not reported"
            )

        case_id = parse_case_id(case_ids)
        point_id = await self.resolver.resolve(self.config.plan_id, case_id)
        if point_id is None:
            raise TestPointNotFoundError(
                f"No test points found for test case [{case_ids}]"
            )

        case_result = CaseResult.from_test(
            test, result, case_id=case_id, point_id=point_id, outcome=outcome
        )
        references = await self.client.submit_results(
            [case_result], self.run_manager.project, run_id
        )
        if not references:
            raise PublicationError(f"No result was created for {test.title}")

        if self.config.upload_attachments and result.attachments:
            await self.uploader.upload(result, case_id, run_id, references[0].id)
