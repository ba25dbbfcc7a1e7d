"""Azure DevOps Test API client module."""

from azure_plan_reporter.client.azure_devops.client import (
    AzureDevOpsClient,
    AzureDevOpsError,
)
from azure_plan_reporter.client.azure_devops.config import AzureDevOpsConfig

__all__ = ["AzureDevOpsClient", "AzureDevOpsConfig", "AzureDevOpsError"]
