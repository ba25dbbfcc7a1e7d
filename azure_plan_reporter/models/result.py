"""Models for local test outcomes and the case results built from them."""

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

type LocalStatus = Literal["passed", "failed", "timedOut", "skipped", "interrupted"]

type Outcome = Literal["Passed", "Failed", "Paused"]

ANSI_ESCAPE = re.compile(r"\x1b\[.*?m")


def strip_ansi(text: str) -> str:
    """Remove terminal color codes."""
    return ANSI_ESCAPE.sub("", text)


def map_outcome(status: str) -> Outcome | None:
    """Map a local test status to the remote outcome.

    Returns None for statuses that have no remote counterpart; such results
    are not published.
    """
    match status:
        case "passed":
            return "Passed"
        case "failed" | "timedOut":
            return "Failed"
        case "skipped":
            return "Paused"
        case _:
            return None


@dataclass(frozen=True, kw_only=True)
class TestCase:
    """Identity of a local test."""

    __test__ = False

    id: str
    title: str


@dataclass(frozen=True, kw_only=True)
class TestError:
    """Error raised by a failing test."""

    __test__ = False

    message: str | None = None
    stack: str | None = None


@dataclass(frozen=True, kw_only=True)
class Attachment:
    """Artifact captured while running a test (screenshot, video, trace)."""

    name: str
    content_type: str
    path: Path | None = None


@dataclass(frozen=True, kw_only=True)
class TestResult:
    """Outcome of a single test attempt."""

    __test__ = False

    status: LocalStatus
    duration_ms: float
    error: TestError | None = None
    attachments: Sequence[Attachment] = field(default_factory=tuple)
    retry: int = 0


@dataclass(frozen=True, kw_only=True)
class CaseResult:
    """Result of one test case, ready to be submitted against a test point."""

    case_id: str
    point_id: int
    title: str
    outcome: Outcome
    duration_ms: float
    state: str = "Completed"
    error_message: str | None = None
    stack_trace: str | None = None

    @classmethod
    def from_test(
        cls,
        test: TestCase,
        result: TestResult,
        *,
        case_id: int,
        point_id: int,
        outcome: Outcome,
    ) -> "CaseResult":
        """Build a case result, stripping color codes from the error."""
        error_message = None
        stack_trace = None
        if result.error is not None:
            error_message = f"{test.title}: {strip_ansi(result.error.message or '')}"
            if result.error.stack is not None:
                stack_trace = strip_ansi(result.error.stack)

        return cls(
            case_id=str(case_id),
            point_id=point_id,
            title=test.title,
            outcome=outcome,
            duration_ms=result.duration_ms,
            error_message=error_message,
            stack_trace=stack_trace,
        )
