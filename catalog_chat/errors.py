"""Errors raised while processing a chat turn.

Routers translate these into HTTP responses using ``http_status``; only
``PersistenceFailure`` is recovered inside the service layer.
"""


class CatalogChatError(Exception):
    """Base class for turn level errors.

    Attributes:
        code: machine readable error code.
        message: text safe to show to the caller.
        http_status: status used when the error reaches the API layer.
    """

    code = "CATALOG_CHAT_ERROR"
    http_status = 500
    default_message = "Internal error."

    def __init__(self, message: str | None = None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)


class QuotaExceeded(CatalogChatError):
    code = "QUOTA_EXCEEDED"
    http_status = 429
    default_message = "Too many messages. Daily limit reached."


class MalformedClassification(CatalogChatError):
    """The router model returned something that is not a routing decision."""

    code = "MALFORMED_CLASSIFICATION"
    http_status = 500
    default_message = "Could not parse the router's response."


class CapabilityUnavailable(CatalogChatError):
    """A remote capability is missing or not configured."""

    code = "CAPABILITY_UNAVAILABLE"
    http_status = 503
    default_message = "The requested capability is not available."


class CapabilityFailure(CatalogChatError):
    code = "CAPABILITY_FAILURE"
    http_status = 502
    default_message = "Error generating response."


class PersistenceFailure(CatalogChatError):
    code = "PERSISTENCE_FAILURE"
    default_message = "Conversation storage is unavailable."
