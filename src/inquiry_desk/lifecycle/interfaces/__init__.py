"""
Lifecycle Interfaces Layer
==========================

Interface adapters (controllers) for the lifecycle module.

Contains:
- lifecycle_router: sweep and rebalance triggers
- inquiry_router: inquiry read surface and manual assignment
- activity_router: recent activity feed
"""

from inquiry_desk.lifecycle.interfaces.controllers import (
    activity_router,
    inquiry_router,
    lifecycle_router,
)

__all__ = ["lifecycle_router", "inquiry_router", "activity_router"]
