"""
Error taxonomy shared by the store, the delivery channels and the API.
"""
from typing import Optional


class DeliveryBoyError(Exception):
    """Base class for every error raised on purpose by this package."""


class ConfigError(DeliveryBoyError):
    """Configuration is missing or invalid."""


class InvalidInput(DeliveryBoyError):
    """A submitted entry failed validation. Nothing was stored."""


class Unauthorized(DeliveryBoyError):
    """The presented credential does not match the configured secret."""


class PersistenceFailure(DeliveryBoyError):
    """The entry store could not be read or written."""


class DeliveryFailure(DeliveryBoyError):
    """A webhook destination could not be resolved or rejected the message."""

    def __init__(self, destination: str, reason: str):
        super().__init__(f"Delivery to {destination} failed: {reason}")
        self.destination = destination
        self.reason = reason


class ScheduleInvocationFailure(DeliveryBoyError):
    """A scheduled job failed. Logged and absorbed by the scheduler."""

    def __init__(self, job_name: str, cause: Optional[BaseException] = None):
        super().__init__(f"Scheduled job '{job_name}' failed: {cause}")
        self.job_name = job_name
        self.cause = cause
