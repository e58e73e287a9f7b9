"""Shared error classes for lead services, the decoder, and repositories."""

from __future__ import annotations


class LeadDeskError(RuntimeError):
    """Base exception raised by lead services."""

    def __init__(self, message: str, code: str = "LEAD_DESK_ERROR") -> None:
        super().__init__(message)
        self.code = code


class ProviderError(LeadDeskError):
    """Raised when the language-model provider fails."""

    def __init__(self, message: str, code: str = "502_LLM_UPSTREAM") -> None:
        super().__init__(message, code=code)


class ModelOutputError(LeadDeskError):
    """Raised when model text cannot be decoded into the expected JSON shape."""

    def __init__(self, message: str, code: str = "502_MODEL_OUTPUT") -> None:
        super().__init__(message, code=code)


class PersistenceError(LeadDeskError):
    """Raised when the repository fails to read or write rows."""

    def __init__(self, message: str, code: str = "500_INTERNAL") -> None:
        super().__init__(message, code=code)


class LeadNotFoundError(LeadDeskError):
    def __init__(self, lead_id: object) -> None:
        super().__init__(f"Lead {lead_id} not found.", code="404_LEAD_NOT_FOUND")


class MessageNotFoundError(LeadDeskError):
    def __init__(self, message_id: object) -> None:
        super().__init__(f"Message {message_id} not found.", code="404_MESSAGE_NOT_FOUND")


class LeadNotReadyError(LeadDeskError):
    """Raised when a lead is missing data an operation depends on."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="400_LEAD_NOT_READY")


class MessageAlreadySentError(LeadDeskError):
    def __init__(self, message_id: object) -> None:
        super().__init__(
            f"Message {message_id} was already sent; draft a new version instead.",
            code="409_MESSAGE_ALREADY_SENT",
        )


class DeliveryError(LeadDeskError):
    """Raised when outbound email cannot be configured or delivered."""

    def __init__(self, message: str, code: str = "502_DELIVERY_FAILED") -> None:
        super().__init__(message, code=code)
