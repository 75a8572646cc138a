"""Exception taxonomy for the analytics engine."""


class PerfwatchError(Exception):
    """Base class for engine errors."""


class ConfigurationError(PerfwatchError):
    """A notification channel is referenced but has no destination configured."""

    def __init__(self, message, channel=None):
        super().__init__(message)
        self.channel = channel


class TransportError(PerfwatchError):
    """Delivery of a notification failed in transit."""

    def __init__(self, message, status_code=None, channel=None):
        super().__init__(message)
        self.status_code = status_code
        self.channel = channel


class TelemetryError(PerfwatchError):
    """The telemetry source could not be read within its timeout."""
