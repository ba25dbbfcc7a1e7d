"""Errors scoped to the publication of a single test result."""


class PublicationError(Exception):
    """Raised when one test result cannot be published.

    These errors abort only the publication they belong to; reporting stays
    active for other tests.
    """


class UnsupportedStatusError(PublicationError):
    """Raised when a local status has no remote outcome."""


class TestPointNotFoundError(PublicationError):
    """Raised when a case id has no test point in the configured plan."""

    __test__ = False


class TestPlanMismatchError(PublicationError):
    """Raised when a test point belongs to another test plan."""

    __test__ = False
