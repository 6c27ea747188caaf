# app/exceptions.py
"""
Error taxonomy shared by services and routers.
Services raise these; app.main maps each one to an HTTP status.
"""


class LabSecurityError(Exception):
    """Base class for every error raised on purpose by the backend."""


class PersistenceError(LabSecurityError):
    """The database is unreachable or rejected a write. Never retried automatically."""


class ValidationError(LabSecurityError):
    """Malformed input to a create/enroll operation. Raised before any write or network call."""


class NotFoundError(LabSecurityError):
    """A record looked up by id or name does not exist."""


class DeliveryError(LabSecurityError):
    """A push or request to one receiver/device failed or timed out."""

    def __init__(self, device_name: str, reason: str):
        super().__init__(f"{device_name}: {reason}")
        self.device_name = device_name
        self.reason = reason
