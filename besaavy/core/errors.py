"""Exceptions raised by the timing engine."""


class ConfigurationError(ValueError):
    """Rejected preference, schedule or context update. Prior state stays in effect."""


class TimeFormatError(ConfigurationError):
    """Wall-clock string is not a valid HH:MM time."""


class DeliveryFailure(RuntimeError):
    """Delivery transport could not hand the notification to the device."""

    def __init__(self, notification_id: str, reason: str):
        super().__init__(f"Delivery of {notification_id} failed: {reason}")
        self.notification_id = notification_id
        self.reason = reason
