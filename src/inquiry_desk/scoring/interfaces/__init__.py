"""
Scoring Interfaces Layer
========================

Interface adapters (controllers) for the scoring module.

This is the outermost layer - handles HTTP requests/responses and
delegates to application services.
"""

from inquiry_desk.scoring.interfaces.controllers import scoring_router

__all__ = ["scoring_router"]
