"""
Workforce Application Layer
===========================

Contains:
- Services: WorkloadBalancer, OperatorService
- DTOs: Operator request/response models
- Repository interface: IOperatorRepository
"""

from inquiry_desk.workforce.application.dto import (
    OperatorCreateRequest,
    OperatorActiveRequest,
    OperatorResponse,
    WorkloadEntry,
    AggregatesResponse,
    RecomputeResponse,
)
from inquiry_desk.workforce.application.services import (
    IOperatorRepository,
    WorkloadBalancer,
    OperatorService,
)

__all__ = [
    # DTOs
    "OperatorCreateRequest",
    "OperatorActiveRequest",
    "OperatorResponse",
    "WorkloadEntry",
    "AggregatesResponse",
    "RecomputeResponse",
    # Services
    "WorkloadBalancer",
    "OperatorService",
    # Repository Interfaces
    "IOperatorRepository",
]
