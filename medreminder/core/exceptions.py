"""
Error taxonomy for the medication reminder subsystem.

Store and scheduler boundaries catch low-level failures (SQLAlchemy, the
notification backend) and re-raise them as one of these types. Only
``ValidationError`` and ``NotFoundError`` are meant to reach the UI layer.
"""
from typing import Any, Dict, List, Optional


class MedReminderError(Exception):
    """Base class for all errors raised by this package"""


class ValidationError(MedReminderError, ValueError):
    """Malformed input rejected before persistence or scheduling"""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class InvalidTimeFormatError(ValidationError):
    """Notification time is not a 24-hour HH:MM string"""

    def __init__(self, value: str):
        super().__init__(f"Invalid time format: {value}")
        self.value = value


class NotFoundError(MedReminderError, LookupError):
    """Operation referenced a plan id that does not exist"""

    def __init__(self, plan_id: int):
        super().__init__(f"Plan not found: {plan_id}")
        self.plan_id = plan_id


class PersistenceError(MedReminderError):
    """Local storage engine failure"""


class PermissionDeniedError(MedReminderError):
    """The OS declined notification permission"""


class SchedulingError(MedReminderError):
    """The OS notification API failed to schedule a reminder"""

    def __init__(self, identifier: str, message: str):
        super().__init__(f"Failed to schedule {identifier}: {message}")
        self.identifier = identifier
