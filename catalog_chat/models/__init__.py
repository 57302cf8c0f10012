from .domain import (
    AssistantMessage,
    ChatData,
    ClassificationParameters,
    ClassificationResult,
    Conversation,
    Intent,
    Message,
    ProductMatch,
    ProductRecord,
    RateLimitTicket,
    UserMessage,
)
