class LifelineError(Exception):
    """Base class for errors raised by the emergency core."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(LifelineError):
    """Unknown QR identifier, access token, alert, patient or contact."""


class ValidationError(LifelineError):
    """Malformed coordinates or missing required fields."""


class StateConflictError(LifelineError):
    """Operation not allowed in the resource's current state."""


class CryptoError(LifelineError):
    """Encryption/decryption failure. Always fatal to the calling operation."""


class ChannelDeliveryError(LifelineError):
    """A single channel send failed. Captured by the dispatcher, never propagated."""

    def __init__(self, channel: str, reason: str, details: dict = None):
        self.channel = channel
        self.reason = reason
        super().__init__(f"{channel} delivery failed: {reason}", details)
