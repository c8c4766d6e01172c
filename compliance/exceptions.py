"""Exceptions raised by the compliance engine."""


class ComplianceError(Exception):
    """Base class for compliance engine errors."""


class UnknownSourceError(ComplianceError, ValueError):
    """Raised when a record carries a source tag the engine does not accept."""

    def __init__(self, source):
        self.source = source
        super().__init__(f"Unrecognized record source: {source!r}")


class AliasConflictError(ComplianceError, ValueError):
    """Raised when an alias would be re-pointed to a different canonical field."""


class RuleRepositoryError(ComplianceError):
    """Raised when rule data cannot be loaded and no previous snapshot exists."""


class FloorViolationError(ComplianceError):
    """Raised when reconciliation loses a prohibited-content finding."""
