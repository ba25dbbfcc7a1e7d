"""Tests for the disablement guard."""

import logging

import pytest

from azure_plan_reporter.guard import DisablementGuard
from azure_plan_reporter.testing.factories import reporter_config


def test_starts_untripped() -> None:
    """A new guard lets work through."""
    assert not DisablementGuard().tripped


def test_trip_is_permanent(caplog: pytest.LogCaptureFixture) -> None:
    """Tripping logs the reason once and never resets."""
    guard = DisablementGuard()

    with caplog.at_level(logging.INFO):
        guard.trip("first failure")
        guard.trip("second failure")

    assert guard.tripped
    warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert warnings == ["first failure"]


def test_for_config_valid() -> None:
    """A complete configuration leaves the guard open."""
    assert not DisablementGuard.for_config(reporter_config()).tripped


def test_for_config_explicitly_disabled(caplog: pytest.LogCaptureFixture) -> None:
    """Opting out trips the guard without a warning."""
    with caplog.at_level(logging.WARNING):
        guard = DisablementGuard.for_config(reporter_config(disabled=True))

    assert guard.tripped
    assert caplog.records == []


@pytest.mark.parametrize(
    ("overrides", "option"),
    [
        ({"org_url": None}, "orgUrl"),
        ({"project_name": ""}, "projectName"),
        ({"plan_id": None}, "planId"),
        ({"token": None}, "token"),
        ({"token": ""}, "token"),
    ],
)
def test_for_config_missing_option(
    overrides: dict[str, object], option: str, caplog: pytest.LogCaptureFixture
) -> None:
    """A missing required option trips the guard with a warning naming it."""
    with caplog.at_level(logging.WARNING):
        guard = DisablementGuard.for_config(reporter_config(**overrides))

    assert guard.tripped
    assert f"'{option}' is not set. Reporting is disabled." in caplog.text
