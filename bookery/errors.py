"""
Booking and payment errors.

Services raise these and the API layer renders them with a single
exception handler, so routers never build error payloads by hand.
"""

from typing import Any, Optional

from fastapi import status


class BookingError(Exception):
    """Base exception for booking workflow errors"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        payload = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(BookingError):
    """Bad or missing input. Never retried."""

    status_code = status.HTTP_400_BAD_REQUEST


class EmptyCartError(ValidationError):
    pass


class AmountMismatch(ValidationError):
    pass


class InvalidPaymentType(ValidationError):
    """Payment metadata is missing or not a booking this flow can finalize"""

    pass


class NotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND


class PaymentNotFound(NotFoundError):
    pass


class ServicesNotFound(NotFoundError):
    pass


class ResourceNotFound(NotFoundError):
    pass


class ForbiddenError(BookingError):
    """Caller does not own the payment or booking"""

    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(BookingError):
    status_code = status.HTTP_409_CONFLICT


class InvalidTransition(ConflictError):
    pass


class PaymentNotCompleted(BookingError):
    """The gateway has not reported the payment as complete"""

    status_code = status.HTTP_402_PAYMENT_REQUIRED

    def __init__(self, message: str, gateway_status: str, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.gateway_status = gateway_status
        self.details.setdefault("gateway_status", gateway_status)


class ExternalServiceError(BookingError):
    """Payment gateway or another upstream service failed"""

    status_code = status.HTTP_502_BAD_GATEWAY


class PartialFailure(BookingError):
    """Booking state is inconsistent and needs an operator"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
