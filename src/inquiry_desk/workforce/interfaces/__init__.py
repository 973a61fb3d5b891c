"""
Workforce Interfaces Layer
==========================

Interface adapters (controllers) for the workforce module.
"""

from inquiry_desk.workforce.interfaces.controllers import workforce_router

__all__ = ["workforce_router"]
