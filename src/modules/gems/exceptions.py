from fastapi import status

from src.api.core.exceptions.base import StudioException
from src.api.core.messages import MessageCode


class InsufficientGemsError(StudioException):
    def __init__(self, details: dict | None = None):
        super().__init__(
            MessageCode.INSUFFICIENT_GEMS, status.HTTP_402_PAYMENT_REQUIRED, details
        )


class BalanceStoreUnavailableError(StudioException):
    def __init__(self, details: dict | None = None):
        super().__init__(
            MessageCode.BALANCE_STORE_UNAVAILABLE,
            status.HTTP_503_SERVICE_UNAVAILABLE,
            details,
        )


class GenerationFailedError(StudioException):
    def __init__(self, details: dict | None = None):
        super().__init__(MessageCode.GENERATION_FAILED, status.HTTP_502_BAD_GATEWAY, details)


class RefundFailedError(StudioException):
    """The user was charged, generation failed and the refund did not land."""

    def __init__(self, details: dict | None = None):
        super().__init__(
            MessageCode.REFUND_FAILED, status.HTTP_500_INTERNAL_SERVER_ERROR, details
        )


class SpendInProgressError(StudioException):
    def __init__(self, details: dict | None = None):
        super().__init__(MessageCode.SPEND_IN_PROGRESS, status.HTTP_409_CONFLICT, details)
