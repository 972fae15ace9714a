"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    code = "BAD_REQUEST"

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    code = "CONFLICT"

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


# Referential lookups


class AppointmentNotFoundError(NotFoundException):
    code = "APPOINTMENT_NOT_FOUND"

    def __init__(self, message: str = "Appointment not found"):
        super().__init__(message)


class PatientNotFoundError(NotFoundException):
    code = "PATIENT_NOT_FOUND"

    def __init__(self, message: str = "Patient not found"):
        super().__init__(message)


class DoctorNotFoundError(NotFoundException):
    code = "DOCTOR_NOT_FOUND"

    def __init__(self, message: str = "Doctor not found"):
        super().__init__(message)


class UnitNotFoundError(NotFoundException):
    code = "UNIT_NOT_FOUND"

    def __init__(self, message: str = "Unit not found"):
        super().__init__(message)


class ClinicNotFoundError(NotFoundException):
    code = "CLINIC_NOT_FOUND"

    def __init__(self, message: str = "Clinic not found"):
        super().__init__(message)


# Appointment validation


class InvalidTimeOrderError(ValidationException):
    """End time is not strictly after start time."""

    code = "INVALID_TIME_ORDER"

    def __init__(self, message: str = "End time must be after start time"):
        super().__init__(message)


class InvalidStatusError(ValidationException):
    """Status is not one of the recognized appointment tags."""

    code = "INVALID_STATUS"

    def __init__(self, message: str = "Invalid appointment status"):
        super().__init__(message)


class InvalidTimezoneError(ValidationException):
    """IANA zone name could not be resolved."""

    code = "INVALID_TIMEZONE"

    def __init__(self, message: str = "Invalid timezone"):
        super().__init__(message)


class InvalidStatusTransitionError(ConflictException):
    """Status change not allowed by the transition table."""

    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, message: str = "Invalid appointment status transition"):
        super().__init__(message)


# Scheduling


class AppointmentConflictError(ConflictException):
    """Candidate overlaps an active appointment for the same doctor or unit."""

    code = "TIME_SLOT_CONFLICT"

    def __init__(
        self,
        message: str = "The selected time slot conflicts with an existing appointment",
    ):
        super().__init__(message)


class DoctorNotAvailableError(ConflictException):
    """No availability window covers the candidate interval."""

    code = "DOCTOR_NOT_AVAILABLE"

    def __init__(self, message: str = "Doctor is not available at the requested time"):
        super().__init__(message)


# Rescheduling queue


class NotInQueueError(BadRequestException):
    """Queue operation attempted on an appointment that is not queued."""

    code = "APPOINTMENT_NOT_IN_QUEUE"

    def __init__(self, message: str = "Appointment is not in rescheduling queue"):
        super().__init__(message)


class OwnershipMismatchError(ForbiddenException):
    """Resource belongs to a different organization than the caller."""

    code = "OWNERSHIP_MISMATCH"

    def __init__(self, message: str = "Resource does not belong to organization"):
        super().__init__(message)


# Availability


class InvalidDateRangeError(ValidationException):
    """Date range filter is incomplete, inverted or too long."""

    code = "INVALID_DATE_RANGE"

    def __init__(self, message: str = "Invalid date range"):
        super().__init__(message)
