"""
Workforce Domain Layer
======================

Contains:
- Entities: Operator, OperatorAggregates
"""

from inquiry_desk.workforce.domain.entities import Operator, OperatorAggregates

__all__ = [
    "Operator",
    "OperatorAggregates",
]
