# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the TutorBook backend.

Every error a booking operation can raise is a DomainException subclass
carrying a user-facing message, a stable code and optional details. The API
layer converts them to HTTP responses; the scheduled jobs catch them per item.
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

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "details": self.details}

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message or "An error occurred processing your request",
            "code": self.code,
            "details": self.details,
        }


# Specific business exceptions


class BookingConflictException(ConflictException):
    """Raised when a booking overlaps an existing booking of either party."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot conflicts with an existing booking",
            code="BOOKING_CONFLICT",
            details=details or {},
        )


class RecurringSlotConflictException(ConflictException):
    """Raised when a booking lands on a slot reserved by an active recurring rule."""

    def __init__(self, day_of_week: str, hour_utc: int, minute_utc: int, rule_id: str):
        schedule = f"every {day_of_week.capitalize()} at {hour_utc:02d}:{minute_utc:02d} UTC"
        super().__init__(
            message=(
                f"This time is reserved by a recurring booking ({schedule}). "
                "Please choose a different time."
            ),
            code="RECURRING_SLOT_CONFLICT",
            details={"recurring_rule_id": rule_id, "schedule": schedule},
        )


class PastBookingTimeException(ValidationException):
    def __init__(self) -> None:
        super().__init__(
            message="Cannot create a booking in the past. Please select a future date and time.",
            code="BOOKING_IN_PAST",
        )


class InvalidPairingException(ForbiddenException):
    """Raised when a booking would pair two tutors or two students."""

    def __init__(self, message: str):
        super().__init__(message=message, code="INVALID_PAIRING")


class ActorExclusivityException(ForbiddenException):
    """Raised when the user who made a proposal tries to answer it."""

    def __init__(self, action: str):
        super().__init__(
            message=(
                f"Cannot {action} your own booking request or reschedule proposal. "
                f"The other party must {action}."
            ),
            code="ACTOR_EXCLUSIVITY",
            details={"action": action},
        )


class InvalidStateTransitionException(BusinessRuleException):
    """Raised when a transition is attempted from a status that does not permit it."""

    def __init__(self, message: str, *, current_status: Optional[str] = None):
        super().__init__(
            message=message,
            code="INVALID_STATE_TRANSITION",
            details={"current_status": current_status} if current_status else {},
        )


class BookingEligibilityException(BusinessRuleException):
    """Raised when the requested booking type is not currently permitted for the pair."""

    def __init__(self, message: str, *, requested_type: str):
        super().__init__(
            message=message,
            code="BOOKING_NOT_ELIGIBLE",
            details={"requested_type": requested_type},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
