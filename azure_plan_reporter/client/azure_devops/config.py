"""Configuration for the Azure DevOps client."""

from pydantic import BaseModel, SecretStr

from azure_plan_reporter.config import ReporterConfig


class AzureDevOpsConfig(BaseModel):
    """Connection settings for an Azure DevOps organization."""

    token: SecretStr
    org_url: str
    api_version: str = "7.1"

    @classmethod
    def from_reporter_config(cls, config: ReporterConfig) -> "AzureDevOpsConfig":
        """Build connection settings, tolerating unset reporter options."""
        return cls(
            token=config.token or SecretStr(""),
            org_url=config.org_url or "",
        )
