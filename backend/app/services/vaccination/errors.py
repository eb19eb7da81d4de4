"""
Domain errors raised by the vaccination services.

Every error carries a stable machine-readable ``kind`` and the HTTP status the
API layer answers with. ``extra`` holds structured details (e.g. the remaining
days of an unmet interval) that are merged into the JSON error body.
"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    kind = "DOMAIN_ERROR"
    status_code = 400
    default_message = "Domain rule violated"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra: Dict[str, Any] = extra
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "error_type": self.kind, **self.extra}


class NotFoundError(DomainError):
    kind = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"

    @classmethod
    def for_entity(cls, entity: str, entity_id: Any) -> "NotFoundError":
        return cls(f"{entity} with ID {entity_id} not found", entity=entity, entity_id=entity_id)


class ValidationError(DomainError):
    kind = "VALIDATION_ERROR"
    default_message = "Invalid request"


class InvalidSchedulingDateError(DomainError):
    kind = "INVALID_SCHEDULING_DATE"
    default_message = "Scheduled date must be in the future"


class InvalidDoseNumberError(DomainError):
    kind = "INVALID_DOSE_NUMBER"

    def __init__(self, vaccine_id: int, doses_required: int, dose_number: int):
        super().__init__(
            f"Dose number {dose_number} is out of range. "
            f"Vaccine {vaccine_id} requires only {doses_required} doses",
            vaccine_id=vaccine_id,
            doses_required=doses_required,
            dose_number=dose_number,
        )


class MissingPreviousDoseError(DomainError):
    kind = "MISSING_PREVIOUS_DOSE"
    default_message = "Previous dose is missing for this vaccine"


class DuplicateSchedulingError(DomainError):
    kind = "DUPLICATE_SCHEDULING"
    status_code = 409
    default_message = "A scheduling for this vaccine and dose already exists"


class DuplicateApplicationError(DomainError):
    kind = "DUPLICATE_APPLICATION"
    status_code = 409

    def __init__(self, user_id: int, vaccine_id: int, dose_number: int):
        super().__init__(
            f"Dose {dose_number} of vaccine {vaccine_id} was already applied to user {user_id}",
            user_id=user_id,
            vaccine_id=vaccine_id,
            dose_number=dose_number,
        )


class IntervalNotMetError(DomainError):
    kind = "INTERVAL_NOT_MET"

    def __init__(self, required_days: int, elapsed_days: int, message: Optional[str] = None):
        remaining = max(required_days - elapsed_days, 0)
        detail = (
            f"Minimum interval of {required_days} days between doses not met. "
            f"Only {elapsed_days} days have passed, {remaining} days remaining"
        )
        super().__init__(
            f"{detail}. {message}" if message else detail,
            required_days=required_days,
            elapsed_days=elapsed_days,
            remaining_days=remaining,
        )


class InsufficientStockError(DomainError):
    kind = "INSUFFICIENT_STOCK"
    status_code = 409
    default_message = "Batch has no remaining doses"


class BatchNotAvailableError(InsufficientStockError):
    """The batch exists but is expired, depleted or discarded"""
    kind = "BATCH_NOT_AVAILABLE"
    default_message = "Batch is not available"


class SchedulingAlreadyCompletedError(DomainError):
    kind = "SCHEDULING_ALREADY_COMPLETED"
    status_code = 409
    default_message = "Cannot modify a completed scheduling"


class InvalidStatusTransitionError(DomainError):
    kind = "INVALID_STATUS_TRANSITION"
    status_code = 409

    def __init__(self, current: Any, target: Any = None, message: Optional[str] = None):
        current = getattr(current, "value", current)
        target = getattr(target, "value", target)
        if message is None:
            message = (
                f"Cannot change status from {current} to {target}"
                if target is not None
                else f"Cannot modify a record in status {current}"
            )
        super().__init__(message, current_status=current, target_status=target)


class ExceededDosesError(DomainError):
    kind = "EXCEEDED_DOSES"

    def __init__(self, vaccine_id: int, doses_required: int):
        super().__init__(
            f"Vaccine {vaccine_id} requires only {doses_required} doses",
            vaccine_id=vaccine_id,
            doses_required=doses_required,
        )


class ConflictingInputError(DomainError):
    kind = "CONFLICTING_INPUT"
    default_message = "Either schedulingId or walk-in fields must be provided, not both"


class UnauthorizedApplicationUpdateError(DomainError):
    kind = "UNAUTHORIZED_APPLICATION_UPDATE"
    status_code = 403
    default_message = "Only the nurse who applied the vaccine or a manager can update this application"


class DuplicateVaccineError(DomainError):
    kind = "DUPLICATE_VACCINE"
    status_code = 409
    default_message = "A vaccine with this name and manufacturer already exists"


class DuplicateBatchNumberError(DomainError):
    kind = "DUPLICATE_BATCH_NUMBER"
    status_code = 409

    def __init__(self, batch_number: str):
        super().__init__(f"Batch number {batch_number} already exists", batch_number=batch_number)


class VaccineInUseError(DomainError):
    kind = "VACCINE_IN_USE"
    status_code = 409
    default_message = "Vaccine already has applications; only description and min_stock_level can change"


class InvalidBatchQuantityError(DomainError):
    kind = "INVALID_BATCH_QUANTITY"
    default_message = "Current quantity must be between 0 and the initial quantity"


class ForbiddenError(DomainError):
    kind = "FORBIDDEN"
    status_code = 403
    default_message = "You do not have permission to access this resource"
