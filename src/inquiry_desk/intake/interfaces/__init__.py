"""
Intake Interfaces Layer
=======================

Interface adapters (controllers) for the intake module.

This is the outermost layer - handles HTTP requests/responses and
delegates to application services.
"""

from inquiry_desk.intake.interfaces.controllers import intake_router

__all__ = ["intake_router"]
