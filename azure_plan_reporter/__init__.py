"""Publish pytest results to Azure DevOps Test Plans."""
