"""Configuration for the Azure DevOps Test Plans reporter."""

from collections.abc import Set
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr

type AttachmentType = Literal["screenshot", "video", "trace"]

DEFAULT_ATTACHMENT_TYPES: frozenset[AttachmentType] = frozenset(["screenshot"])

REQUIRED_OPTIONS = (
    ("org_url", "orgUrl"),
    ("project_name", "projectName"),
    ("plan_id", "planId"),
    ("token", "token"),
)


class ReporterConfig(BaseModel):
    """Configuration for the reporter.

    Required options are typed as optional: a missing value disables
    reporting. camelCase option names (``orgUrl``, ``testRunTitle``, ...) are
    accepted alongside the field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    token: SecretStr | None = None
    plan_id: int | None = Field(
        default=None, validation_alias=AliasChoices("plan_id", "planId")
    )
    org_url: str | None = Field(
        default=None, validation_alias=AliasChoices("org_url", "orgUrl")
    )
    project_name: str | None = Field(
        default=None, validation_alias=AliasChoices("project_name", "projectName")
    )
    verbose: bool = Field(
        default=False, validation_alias=AliasChoices("verbose", "logging")
    )
    disabled: bool = Field(
        default=False, validation_alias=AliasChoices("disabled", "isDisabled")
    )
    environment: str | None = None
    run_title: str = Field(
        default="Playwright Test Run",
        validation_alias=AliasChoices("run_title", "testRunTitle"),
    )
    upload_attachments: bool = Field(
        default=False,
        validation_alias=AliasChoices("upload_attachments", "uploadAttachments"),
    )
    attachment_types: frozenset[AttachmentType] | None = Field(
        default=None,
        validation_alias=AliasChoices("attachment_types", "attachmentsType"),
    )
    run_id_timeout: float = Field(
        default=10.0, gt=0, description="Seconds to wait for the run to be created"
    )
    poll_interval: float = Field(
        default=0.25, gt=0, description="Seconds between pending-results checks"
    )
    drain_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Seconds to wait for pending results (None waits forever)",
    )

    def missing_option(self) -> str | None:
        """Return the name of the first required option that is not set."""
        for field_name, option in REQUIRED_OPTIONS:
            value = getattr(self, field_name)
            if isinstance(value, SecretStr):
                value = value.get_secret_value()
            if not value:
                return option
        return None

    @property
    def run_name(self) -> str:
        """Display name of the remote run."""
        if self.environment:
            return f"[{self.environment}]: {self.run_title}"
        return self.run_title

    @property
    def effective_attachment_types(self) -> Set[AttachmentType]:
        """Attachment kinds to upload, screenshots when none are configured."""
        if self.attachment_types is None:
            return DEFAULT_ATTACHMENT_TYPES
        return self.attachment_types
