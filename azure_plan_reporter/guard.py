"""Latch that turns the reporter into a no-op for the rest of the run."""

import logging

from azure_plan_reporter.config import ReporterConfig

log = logging.getLogger(__name__)


class DisablementGuard:
    """Process-wide disablement flag, shared explicitly by every component.

    Once tripped it is never reset. Components check it before doing any
    remote work.
    """

    def __init__(self, *, tripped: bool = False) -> None:
        self._tripped = tripped

    @classmethod
    def for_config(cls, config: ReporterConfig) -> "DisablementGuard":
        """Create a guard already tripped when the configuration is unusable."""
        if config.disabled:
            return cls(tripped=True)

        guard = cls()
        if (option := config.missing_option()) is not None:
            guard.trip(f"'{option}' is not set. Reporting is disabled.")
        return guard

    @property
    def tripped(self) -> bool:
        return self._tripped

    def trip(self, reason: str) -> None:
        """Disable reporting permanently."""
        if self._tripped:
            log.info("%s", reason)
            return
        self._tripped = True
        log.warning("%s", reason)
