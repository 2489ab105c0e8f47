"""Centralized message codes and default messages for API responses."""

from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel


class MessageCode(str, Enum):
    """Centralized message codes for API responses."""

    # Success codes
    SUCCESS = "SUCCESS"
    UPDATED = "UPDATED"
    SIGNED_OUT = "SIGNED_OUT"
    GENERATION_COMPLETED = "GENERATION_COMPLETED"

    # Authentication & Authorization
    AUTH_REQUIRED = "AUTH_REQUIRED"
    FORBIDDEN = "FORBIDDEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    ACCOUNT_BLOCKED = "ACCOUNT_BLOCKED"

    # Gem ledger
    INSUFFICIENT_GEMS = "INSUFFICIENT_GEMS"
    BALANCE_STORE_UNAVAILABLE = "BALANCE_STORE_UNAVAILABLE"
    GENERATION_FAILED = "GENERATION_FAILED"
    REFUND_FAILED = "REFUND_FAILED"
    SPEND_IN_PROGRESS = "SPEND_IN_PROGRESS"
    FEATURE_NOT_FOUND = "FEATURE_NOT_FOUND"

    # Validation errors
    INVALID_INPUT = "INVALID_INPUT"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"


# Default messages for each message code
DEFAULT_MESSAGES = {
    # Success messages
    MessageCode.SUCCESS: "Operation completed successfully",
    MessageCode.UPDATED: "Resource updated successfully",
    MessageCode.SIGNED_OUT: "Signed out",
    MessageCode.GENERATION_COMPLETED: "Generation completed",
    # Authentication & Authorization
    MessageCode.AUTH_REQUIRED: "Authentication required",
    MessageCode.FORBIDDEN: "Access denied",
    MessageCode.INVALID_TOKEN: "Invalid authentication token",
    MessageCode.ACCOUNT_BLOCKED: "Your account has been blocked. Please contact support.",
    # Gem ledger
    MessageCode.INSUFFICIENT_GEMS: "Insufficient gems. Please top up your gems to continue.",
    MessageCode.BALANCE_STORE_UNAVAILABLE: "Gem balance is temporarily unavailable. Please try again.",
    MessageCode.GENERATION_FAILED: "Processing failed. No gems were charged.",
    MessageCode.REFUND_FAILED: "Processing failed and your gems could not be refunded. Please contact support.",
    MessageCode.SPEND_IN_PROGRESS: "This tool is already processing a request",
    MessageCode.FEATURE_NOT_FOUND: "Feature not found",
    # Validation errors
    MessageCode.INVALID_INPUT: "Invalid input provided",
    # Generic errors
    MessageCode.INTERNAL_ERROR: "Internal server error",
    MessageCode.BAD_REQUEST: "Bad request",
    MessageCode.NOT_FOUND: "Resource not found",
}

T = TypeVar("T")


class PaginationInfo(BaseModel):
    """Common pagination information."""

    total: int
    limit: int
    offset: int
    has_more: bool


class Paginated(BaseModel, Generic[T]):
    """Generic paginated response wrapper."""

    items: list[T]
    pagination: PaginationInfo


class APIResponse(BaseModel, Generic[T]):
    """Base API response model with consistent structure and proper typing."""

    message_code: MessageCode
    message: str
    data: T | None = None

    @classmethod
    def success(
        cls,
        message_code: MessageCode = MessageCode.SUCCESS,
        message: str | None = None,
        data: T | None = None,
    ) -> "APIResponse[T]":
        """Create a success response."""
        return cls(
            message_code=message_code,
            message=message or DEFAULT_MESSAGES.get(message_code, "Success"),
            data=data,
        )


def get_default_message(message_code: MessageCode) -> str:
    """Get default message for a message code."""
    return DEFAULT_MESSAGES.get(message_code, "Operation completed")
