"""
Lifecycle Application Layer
===========================

Contains:
- Services: LifecycleService, EscalationSweeper
- DTOs: Inquiry, activity, sweep and rebalance models
- Repository interfaces: IInquiryRepository, IActivityRepository
"""

from inquiry_desk.lifecycle.application.dto import (
    AssignRequest,
    SweepRequest,
    InquiryResponse,
    InquiryListResponse,
    InquiryStatsResponse,
    ActivityResponse,
    SweepResponse,
    RebalanceResponse,
)
from inquiry_desk.lifecycle.application.services import (
    IInquiryRepository,
    IActivityRepository,
    LifecycleService,
    EscalationSweeper,
)

__all__ = [
    # DTOs
    "AssignRequest",
    "SweepRequest",
    "InquiryResponse",
    "InquiryListResponse",
    "InquiryStatsResponse",
    "ActivityResponse",
    "SweepResponse",
    "RebalanceResponse",
    # Services
    "LifecycleService",
    "EscalationSweeper",
    # Repository Interfaces
    "IInquiryRepository",
    "IActivityRepository",
]
