"""Pydantic models for test management API requests and responses.

Shapes follow the Azure DevOps Test API; field aliases are the wire names.
"""

from collections.abc import Sequence

from pydantic import Field

from azure_plan_reporter.models.base import Model


class ShallowReference(Model):
    """Reference to another resource by id."""

    id: str
    name: str | None = None


class TeamProject(Model):
    """A project from the core API."""

    id: str
    name: str
    state: str | None = None


class TestRun(Model):
    """A test run."""

    __test__ = False

    id: int
    name: str
    state: str | None = None
    web_access_url: str | None = Field(default=None, alias="webAccessUrl")


class TestPoint(Model):
    """A test point, linking a test case to a plan configuration."""

    __test__ = False

    id: int
    test_plan: ShallowReference | None = Field(default=None, alias="testPlan")
    test_case: ShallowReference | None = Field(default=None, alias="testCase")


class PointsQueryResult(Model):
    """Response of the test points query."""

    points: Sequence[TestPoint] | None = None


class TestCaseResultReference(Model):
    """A case result created in a run."""

    __test__ = False

    id: int
    outcome: str | None = None
    url: str | None = None


class TestCaseResultList(Model):
    """Response of the add results call."""

    __test__ = False

    count: int = 0
    value: Sequence[TestCaseResultReference] | None = None


class TestAttachmentReference(Model):
    """An uploaded attachment."""

    __test__ = False

    id: int
    url: str


class RunCreateModel(Model):
    """Payload creating an automated run against a test plan."""

    name: str
    plan: ShallowReference
    automated: bool = True
    configuration_ids: Sequence[int] = Field(default=(1,), alias="configurationIds")


class AttachmentRequest(Model):
    """Payload uploading a base64 encoded attachment."""

    file_name: str = Field(alias="fileName")
    stream: str
    attachment_type: str = Field(default="GeneralAttachment", alias="attachmentType")
    comment: str | None = None
