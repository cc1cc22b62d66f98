"""
Domain Exceptions for IT cost calculations.

Custom exceptions enforcing business rules:
- Price resolution
- Approval lifecycle
- Access control
- CSV import validation
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)


class EntityNotFoundError(DomainError):
    """Raised when an entity cannot be found."""

    def __init__(self, entity_type: str, entity_id):
        message = f"{entity_type} with id '{entity_id}' not found"
        super().__init__(message, code="NOT_FOUND")
        self.entity_type = entity_type
        self.entity_id = entity_id


# =============================================================================
# Pricing Exceptions
# =============================================================================

class PricingNotFoundError(DomainError):
    """Raised when no price list row covers a price type on a date."""

    def __init__(self, price_type: str, on_date):
        message = f"No effective price for '{price_type}' on {on_date}"
        super().__init__(message, code="PRICING_NOT_FOUND")
        self.price_type = price_type
        self.on_date = on_date


class InvalidEffectiveRangeError(DomainError):
    """Raised when a price row ends before it starts."""

    def __init__(self, effective_from, effective_to):
        message = (
            f"effective_to ({effective_to}) must not be before "
            f"effective_from ({effective_from})"
        )
        super().__init__(message, code="INVALID_EFFECTIVE_RANGE")
        self.effective_from = effective_from
        self.effective_to = effective_to


# =============================================================================
# Calculation Exceptions
# =============================================================================

class CalculationNotFoundError(EntityNotFoundError):
    """Raised when a calculation cannot be found."""

    def __init__(self, calculation_id):
        super().__init__("Calculation", calculation_id)
        self.code = "CALCULATION_NOT_FOUND"


class InvalidStatusTransitionError(DomainError):
    """Raised when a lifecycle transition is not allowed from the current status."""

    def __init__(self, calculation_id, current_status: str, target_status: str):
        message = (
            f"Calculation '{calculation_id}' cannot move from "
            f"'{current_status}' to '{target_status}'"
        )
        super().__init__(message, code="INVALID_STATUS_TRANSITION")
        self.calculation_id = calculation_id
        self.current_status = current_status
        self.target_status = target_status


class ApprovalScopeError(DomainError):
    """Raised when an approver's organizations do not cover the calculation."""

    def __init__(self, calculation_id, owning_organization):
        message = (
            f"Not allowed to approve calculation '{calculation_id}' "
            f"owned by '{owning_organization}'"
        )
        super().__init__(message, code="APPROVAL_SCOPE")
        self.calculation_id = calculation_id
        self.owning_organization = owning_organization


# =============================================================================
# Access Exceptions
# =============================================================================

class PermissionDeniedError(DomainError):
    """Raised when the acting user lacks the required role or permission."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message, code="PERMISSION_DENIED")


class AuthenticationError(DomainError):
    """Raised when credentials or tokens are invalid."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, code="AUTHENTICATION_FAILED")


class DuplicateUserError(DomainError):
    """Raised when creating a user with an existing email."""

    def __init__(self, email: str):
        super().__init__(f"A user with email '{email}' already exists", code="DUPLICATE_USER")
        self.email = email


# =============================================================================
# Validation Exceptions
# =============================================================================

class ValidationError(DomainError):
    """Raised when data validation fails."""

    def __init__(self, field: str, message: str):
        super().__init__(f"Validation failed for '{field}': {message}", code="VALIDATION_ERROR")
        self.field = field


class CsvImportError(DomainError):
    """Raised when an uploaded CSV file cannot be used at all."""

    def __init__(self, message: str):
        super().__init__(message, code="CSV_IMPORT_ERROR")


class InvariantViolationError(DomainError):
    """Raised when a calculation invariant is violated."""

    def __init__(self, invariant_name: str, expected: str, actual: str):
        message = (
            f"Invariant '{invariant_name}' violated. "
            f"Expected: {expected}, Actual: {actual}"
        )
        super().__init__(message, code="INVARIANT_VIOLATION")
        self.invariant_name = invariant_name
        self.expected = expected
        self.actual = actual


class ReferenceInUseError(DomainError):
    """Raised when deleting a row that other rows still reference."""

    def __init__(self, entity_type: str, entity_id, referenced_by: str, count: int):
        super().__init__(
            f"{entity_type} with id '{entity_id}' is used by {count} {referenced_by} and cannot be deleted",
            code="REFERENCE_IN_USE"
        )
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.referenced_by = referenced_by
        self.count = count
