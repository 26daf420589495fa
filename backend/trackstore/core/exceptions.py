"""Domain exceptions for the purchase fulfillment pipeline

Every exception carries the HTTP status and a stable error code so the API
layer can render it without inspecting messages.
"""


class TrackStoreError(Exception):
    """Base class for errors surfaced to API callers"""
    status_code = 500
    error = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(TrackStoreError):
    status_code = 401
    error = "unauthorized"
    default_message = "Not authenticated. Please log in."


# Webhook authenticity and decoding

class InvalidSignature(TrackStoreError):
    status_code = 400
    error = "invalid_signature"
    default_message = "Invalid signature"


class InvalidPayload(TrackStoreError):
    status_code = 400
    error = "invalid_payload"
    default_message = "Invalid payload"


class WebhookNotConfigured(TrackStoreError):
    status_code = 500
    error = "webhook_not_configured"
    default_message = "Webhook secret not configured"


class MalformedEvent(TrackStoreError):
    """Authentic event that lacks fields required to record a purchase"""
    status_code = 422
    error = "malformed_event"
    default_message = "Payment event is missing required fields"

    def __init__(self, message: str = None, missing: tuple = (), event_id: str = None, event_type: str = None):
        self.missing = tuple(missing)
        self.event_id = event_id
        self.event_type = event_type
        super().__init__(message)


# Checkout preconditions

class TrackNotFound(TrackStoreError):
    status_code = 404
    error = "track_not_found"
    default_message = "Track not found"


class TrackInactive(TrackStoreError):
    status_code = 409
    error = "track_inactive"
    default_message = "This track is not available for purchase"


class PriceNotConfigured(TrackStoreError):
    status_code = 409
    error = "price_not_configured"
    default_message = "This track is not yet available for purchase. Coming soon!"


class CheckoutSessionNotFound(TrackStoreError):
    status_code = 404
    error = "checkout_session_not_found"
    default_message = "Checkout session not found"


# Downloads

class NotEntitled(TrackStoreError):
    """Raised identically for unknown tracks, unpaid tracks and other buyers' tracks"""
    status_code = 403
    error = "not_entitled"
    default_message = "Not entitled"


class AudioNotAvailable(TrackStoreError):
    status_code = 404
    error = "audio_not_available"
    default_message = "Track file not available"


# Upstream transient failures (retryable by the caller)

class ProviderUnavailable(TrackStoreError):
    status_code = 503
    error = "provider_unavailable"
    default_message = "Payment provider is unavailable. Please try again."


class StorageUnavailable(TrackStoreError):
    status_code = 503
    error = "storage_unavailable"
    default_message = "Download service is temporarily unavailable. Please try again."
