"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from inquiry_desk.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    InvalidTransitionException,
    TransitionConflictException,
    NoEligibleOperatorException,
    AggregateUpdateException,
    DuplicateReferenceException,
)
from inquiry_desk.core.clock import Clock, as_utc, utc_now

__all__ = [
    "Clock",
    "utc_now",
    "as_utc",
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "InvalidTransitionException",
    "TransitionConflictException",
    "NoEligibleOperatorException",
    "AggregateUpdateException",
    "DuplicateReferenceException",
]
