# backend/consultbook/core/exceptions.py
"""
Domain-specific exceptions for the consultbook scheduling engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException carrying the class status code."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidInputException(ValidationException):
    """Raised for malformed dates, slots, ratings or decisions."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        payload = dict(details or {})
        if field:
            payload["field"] = field
        super().__init__(message=message, code="INVALID_INPUT", details=payload)


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated (state or timing)."""

    status_code = HTTP_422_UNPROCESSABLE


class ForbiddenException(DomainException):
    """Raised when the actor lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class SlotUnavailableException(ConflictException):
    """Raised when a requested slot is held by another booking or absent from the template."""

    def __init__(
        self,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        *,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        payload = dict(details or {})
        if start_time and end_time:
            payload.setdefault("slot", f"{start_time}-{end_time}")
        if message is None:
            message = (
                f"Time slot {start_time}-{end_time} is no longer available"
                if start_time and end_time
                else "One or more requested time slots are no longer available"
            )
        super().__init__(message=message, code="SLOT_UNAVAILABLE", details=payload)


class SlotLockedException(ConflictException):
    """Raised when another writer currently holds the slot lock for a date."""

    def __init__(self, booking_type: str, booking_date: str):
        super().__init__(
            message="Slots for this date are being booked right now, please retry",
            code="SLOT_LOCKED",
            details={"booking_type": booking_type, "booking_date": booking_date},
        )


class InsufficientNoticeException(BusinessRuleException):
    """Raised when a reschedule or withdrawal comes too close to the booking time."""

    def __init__(self, required_hours: int, provided_hours: float, *, action: str = "Request"):
        if provided_hours < 0:
            message = (
                f"{action} must be made at least {required_hours} hours before the booking "
                f"time. The booking time has already passed."
            )
        else:
            message = (
                f"{action} must be made at least {required_hours} hours before the booking "
                f"time. Booking time is in {int(provided_hours)} hours."
            )
        super().__init__(
            message=message,
            code="INSUFFICIENT_NOTICE",
            details={
                "required_hours": required_hours,
                "provided_hours": round(provided_hours, 2),
            },
        )


class QuotaExceededException(ForbiddenException):
    """Raised when the subject has used every session of the billing period."""

    def __init__(self, used: int, allowance: int):
        super().__init__(
            message=(
                f"You have used {used}/{allowance} sessions. "
                "Please upgrade your plan for more sessions."
            ),
            code="QUOTA_EXCEEDED",
            details={"used": used, "allowance": allowance},
        )


class NoActiveSubscriptionException(ForbiddenException):
    """Raised when the subject has no active, unexpired subscription."""

    def __init__(self, user_id: str):
        super().__init__(
            message="No active subscription found. Please subscribe to a plan first.",
            code="NO_ACTIVE_SUBSCRIPTION",
            details={"user_id": user_id},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
