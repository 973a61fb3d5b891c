"""
Core Exceptions
================

Custom exceptions for the inquiry pipeline.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries. Batch operations (ingestion,
sweeps) catch them per item and report them; the HTTP layer maps them to
status codes in `inquiry_desk.shared.api.middleware`.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class InvalidTransitionException(DomainException):
    """Raised when a lifecycle transition is not allowed from the current status."""

    def __init__(self, inquiry_id: str, current_status: str, target_status: str):
        self.inquiry_id = inquiry_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Inquiry {inquiry_id} cannot move from {current_status} to {target_status}",
            {
                "inquiry_id": inquiry_id,
                "current_status": current_status,
                "target_status": target_status,
            }
        )


class TransitionConflictException(DomainException):
    """
    Raised when an optimistic guard fails.

    Another process changed the row between our read and our write; the
    caller should retry with fresh state.
    """

    def __init__(self, resource_type: str, resource_id: str, details: Optional[dict] = None):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"{resource_type} {resource_id} was modified concurrently",
            details or {"resource_type": resource_type, "resource_id": resource_id}
        )


class NoEligibleOperatorException(DomainException):
    """Raised when the active operator pool is empty."""

    def __init__(self, details: Optional[dict] = None):
        super().__init__("No active operator is available for assignment", details)


class AggregateUpdateException(RepositoryException):
    """Raised when operator aggregates could not be updated after a reply."""

    def __init__(self, operator_id: str, reason: str):
        self.operator_id = operator_id
        super().__init__(
            f"Aggregate update failed for operator {operator_id}: {reason}",
            {"operator_id": operator_id}
        )


class DuplicateReferenceException(DomainException):
    """Raised when an inquiry with the same external reference already exists."""

    def __init__(self, external_reference: str):
        self.external_reference = external_reference
        super().__init__(
            f"Inquiry with external reference '{external_reference}' already exists",
            {"external_reference": external_reference}
        )
