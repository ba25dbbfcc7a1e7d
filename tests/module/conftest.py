"""Fixtures for module tests using WireMock testcontainers."""

import json
import subprocess
import sys
from collections.abc import Generator
from pathlib import Path
from typing import Protocol

import pytest
from testcontainers.core import testcontainers_config
from wiremock.constants import Config
from wiremock.testing.testcontainer import WireMockContainer

TEST_MODULE = '''
import pytest


@pytest.mark.parametrize("case", ["1234"])
def test_login(case):
    assert case


@pytest.mark.parametrize("case", ["5678"])
def test_checkout(case):
    assert not case, "checkout failed"


def test_untagged():
    pass
'''


class RunPytestFn(Protocol):
    """Protocol for the pytest session runner."""

    def __call__(self, config: dict[str, object]) -> subprocess.CompletedProcess[str]:
        """Run a pytest session publishing with the given configuration."""


@pytest.fixture(scope="session", autouse=True)
def _disable_ryuk() -> None:
    """Disable the extra cleanup instance, we use contexts to clean containers."""
    testcontainers_config.ryuk_disabled = True


@pytest.fixture(scope="session")
def wiremock_server() -> Generator[WireMockContainer, None, None]:
    """Start WireMock container using wiremock's testcontainer support."""
    with WireMockContainer(secure=False) as wm:
        Config.base_url = wm.get_url("__admin")
        yield wm
        print(wm.get_logs())


@pytest.fixture(scope="session")
def wiremock_url(wiremock_server: WireMockContainer) -> str:
    """URL for WireMock from the host."""
    return wiremock_server.get_url("").rstrip("/")


@pytest.fixture
def run_pytest(tmp_path: Path) -> RunPytestFn:
    """Return a function running a small pytest session with the reporter."""
    (tmp_path / "test_shop.py").write_text(TEST_MODULE)

    def _run(config: dict[str, object]) -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            [
                sys.executable,
                "-m",
                "pytest",
                "-p",
                "no:cacheprovider",
                "--azure-plan-config",
                json.dumps(config),
                "test_shop.py",
            ],
            cwd=tmp_path,
            capture_output=True,
            text=True,
            timeout=120,
        )

    return _run
