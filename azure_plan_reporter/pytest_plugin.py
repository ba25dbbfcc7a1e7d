"""pytest plugin publishing the results of a session to Azure DevOps Test Plans.

The reporter is enabled with ``--azure-plan-config`` (or the
``AZURE_PLAN_REPORTER_CONFIG`` environment variable) holding the JSON
configuration. Tests are matched to test cases through a bracketed id in
their name, which is what pytest generates for parametrized tests:
``@pytest.mark.parametrize("case", ["1234"])`` yields ``test_login[1234]``.
"""

import asyncio
import concurrent.futures
import dataclasses
import logging
import os
import sys
import threading
from collections.abc import Callable, Coroutine
from contextlib import AbstractAsyncContextManager, AsyncExitStack, nullcontext
from pathlib import Path
from typing import Any, TextIO

import pytest
from pydantic import ValidationError

from azure_plan_reporter.config import ReporterConfig
from azure_plan_reporter.models.result import (
    Attachment,
    LocalStatus,
    TestCase,
    TestError,
    TestResult,
)
from azure_plan_reporter.reporter import ReporterLifecycle

log = logging.getLogger(__name__)

CONFIG_ENV_VAR = "AZURE_PLAN_REPORTER_CONFIG"
ATTACHMENT_PROPERTY = "plan_attachment"
PLUGIN_NAME = "azure-plan-reporter"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

type LifecycleFactory = Callable[
    [ReporterConfig], AbstractAsyncContextManager[ReporterLifecycle]
]


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register the reporter command line option."""
    group = parser.getgroup("azure-plan", "Azure DevOps Test Plans reporting")
    group.addoption(
        "--azure-plan-config",
        dest="azure_plan_config",
        default=None,
        metavar="JSON",
        help=f"JSON reporter configuration (defaults to ${CONFIG_ENV_VAR})",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Activate the reporter when a configuration is given."""
    # Workers forward their reports to the controller, which publishes them
    if hasattr(config, "workerinput"):
        return

    raw = config.getoption("azure_plan_config") or os.environ.get(CONFIG_ENV_VAR)
    if (reporter_config := load_config(raw)) is None:
        return

    config.pluginmanager.register(ReporterPlugin(reporter_config), PLUGIN_NAME)


def pytest_unconfigure(config: pytest.Config) -> None:
    """Release the reporter if the session ended before it could."""
    plugin = config.pluginmanager.get_plugin(PLUGIN_NAME)
    if isinstance(plugin, ReporterPlugin):
        plugin.close()
        config.pluginmanager.unregister(plugin, PLUGIN_NAME)


@pytest.fixture
def plan_attachment(
    record_property: Callable[[str, object], None],
) -> Callable[[str, Path | str, str], None]:
    """Attach an artifact to the result published for the current test.

    Example:
        @pytest.mark.parametrize("case", ["1234"])
        def test_login(case, page, plan_attachment, tmp_path):
            page.screenshot(path=tmp_path / "login.png")
            plan_attachment("screenshot", tmp_path / "login.png", "image/png")

    """

    def _attach(name: str, path: Path | str, content_type: str) -> None:
        record_property(
            ATTACHMENT_PROPERTY,
            {"name": name, "path": str(path), "content_type": content_type},
        )

    return _attach


def load_config(raw: str | None) -> ReporterConfig | None:
    """Parse the JSON configuration; invalid JSON disables reporting."""
    if not raw:
        return None
    try:
        return ReporterConfig.model_validate_json(raw)
    except ValidationError as exc:
        log.warning("Invalid reporter configuration, reporting is disabled: %s", exc)
        return None


def configure_logging(verbose: bool) -> logging.StreamHandler[TextIO]:
    """Send reporter diagnostics to stderr; warnings are always shown."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(logging.INFO if verbose else logging.WARNING)

    package_log = logging.getLogger("azure_plan_reporter")
    package_log.setLevel(logging.INFO)
    package_log.addHandler(handler)
    return handler


def is_reportable(report: pytest.TestReport) -> bool:
    """One report per test: the call phase, or a setup that did not pass."""
    return report.when == "call" or (report.when == "setup" and not report.passed)


def report_status(report: pytest.TestReport) -> LocalStatus:
    # xfail reports are skipped, non-strict xpass reports are passed
    if report.skipped:
        return "skipped"
    if report.failed:
        return "failed"
    return "passed"


def report_error(report: pytest.TestReport) -> TestError | None:
    if not report.failed:
        return None

    stack = report.longreprtext or None
    crash = getattr(report.longrepr, "reprcrash", None)
    if crash is not None:
        message = crash.message
    else:
        message = stack.splitlines()[0] if stack else None
    return TestError(message=message, stack=stack)


def report_attachments(report: pytest.TestReport) -> tuple[Attachment, ...]:
    return tuple(
        Attachment(
            name=value["name"],
            content_type=value["content_type"],
            path=Path(value["path"]) if value.get("path") else None,
        )
        for name, value in report.user_properties
        if name == ATTACHMENT_PROPERTY
    )


def to_test_case(report: pytest.TestReport) -> TestCase:
    return TestCase(id=report.nodeid, title=report.head_line or report.nodeid)


def to_test_result(report: pytest.TestReport) -> TestResult:
    """Convert a pytest report to the reporter's result model."""
    return TestResult(
        status=report_status(report),
        duration_ms=report.duration * 1000,
        error=report_error(report),
        attachments=report_attachments(report),
        retry=getattr(report, "rerun", 0),
    )


def with_teardown(result: TestResult, teardown: pytest.TestReport) -> TestResult:
    """Complete a result with the report of its teardown phase.

    Attachments recorded up to teardown are kept, and a failing teardown fails
    a test whose other phases passed.
    """
    result = dataclasses.replace(result, attachments=report_attachments(teardown))
    if not teardown.failed or result.status != "passed":
        return result
    return dataclasses.replace(result, status="failed", error=report_error(teardown))


class ReporterPlugin:
    """Drives a reporter lifecycle from pytest hooks.

    The lifecycle runs on its own event loop thread so that results are
    published while the session keeps running. Test-end events are scheduled
    without waiting; the session end waits for the reporter to drain.
    """

    def __init__(
        self,
        config: ReporterConfig,
        lifecycle_factory: LifecycleFactory = ReporterLifecycle.from_config,
    ) -> None:
        self.config = config
        self._lifecycle_factory = lifecycle_factory
        self._lifecycle: ReporterLifecycle | None = None
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever, name=PLUGIN_NAME, daemon=True
        )
        self._stack = AsyncExitStack()
        self._handler: logging.StreamHandler[TextIO] | None = None
        self._closed = False
        self._finished: dict[str, tuple[TestCase, TestResult]] = {}

    @property
    def lifecycle(self) -> ReporterLifecycle | None:
        return self._lifecycle

    def _submit[T](
        self, coro: Coroutine[Any, Any, T]
    ) -> concurrent.futures.Future[T]:
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    async def _open(self) -> ReporterLifecycle:
        return await self._stack.enter_async_context(
            self._lifecycle_factory(self.config)
        )

    async def _shutdown(self) -> None:
        current = asyncio.current_task()
        tasks = [task for task in asyncio.all_tasks() if task is not current]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self._stack.aclose()

    @pytest.hookimpl(tryfirst=True)
    def pytest_sessionstart(self, session: pytest.Session) -> None:
        """Open the reporter and start creating the run."""
        self._handler = configure_logging(self.config.verbose)
        self._thread.start()
        try:
            self._lifecycle = self._submit(self._open()).result()
        except Exception as exc:
            log.error("Failed to start reporter: %s", exc, exc_info=exc)
            return

        self._submit(self._lifecycle.on_begin())

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        """Schedule publication of a test once its teardown is reported."""
        if self._lifecycle is None:
            return
        if is_reportable(report):
            self._finished[report.nodeid] = (
                to_test_case(report),
                to_test_result(report),
            )
            return
        if report.when != "teardown":
            return
        if (finished := self._finished.pop(report.nodeid, None)) is None:
            return

        test, result = finished
        self._submit(self._lifecycle.on_test_end(test, with_teardown(result, report)))

    @pytest.hookimpl(trylast=True)
    def pytest_sessionfinish(self, session: pytest.Session) -> None:
        """Wait for pending results and complete the run."""
        if self._lifecycle is not None:
            capture = session.config.pluginmanager.getplugin("capturemanager")
            if capture is not None and self._lifecycle.prints_to_stdio:
                suspended = capture.global_and_fixture_disabled()
            else:
                suspended = nullcontext()

            with suspended:
                if self._handler is not None:
                    self._handler.setStream(sys.stderr)
                try:
                    self._submit(self._lifecycle.on_end()).result()
                except Exception as exc:
                    log.error("Failed to complete reporting: %s", exc, exc_info=exc)

        self.close()

    def close(self) -> None:
        """Stop the event loop thread and release the client session."""
        if self._closed:
            return
        self._closed = True

        if self._thread.is_alive():
            self._submit(self._shutdown()).result()
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join()
        self._loop.close()

        if self._handler is not None:
            logging.getLogger("azure_plan_reporter").removeHandler(self._handler)
            self._handler = None
