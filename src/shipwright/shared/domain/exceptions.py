"""
Domain exceptions for Shipwright.

All pipeline errors inherit from ShipwrightError. Whether an error is fatal
is a property of the class, so the orchestrator can decide to unwind or to
record and continue without inspecting messages.
"""


class ShipwrightError(Exception):
    """Base class for all Shipwright exceptions."""

    fatal: bool = True

    def __init__(self, message: str, context: dict = None):
        super().__init__(message)
        self.context = context or {}


class ConfigurationError(ShipwrightError):
    """Raised when the pipeline configuration is invalid or unreadable."""

    pass


class EnvironmentMissing(ShipwrightError):
    """Raised when a required external tool is not installed."""

    pass


class SourceSyncFailure(ShipwrightError):
    """Raised when clone/fetch/checkout/pull fails."""

    pass


class CompileFailure(ShipwrightError):
    """Raised when a compile target exits non-zero."""

    pass


class SignFailure(ShipwrightError):
    """Raised when signing a single file fails."""

    fatal = False


class PublishFailure(ShipwrightError):
    """Raised when remote creation, commit or push fails."""

    fatal = False
