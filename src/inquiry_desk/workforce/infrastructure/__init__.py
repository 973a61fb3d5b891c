"""
Workforce Infrastructure Layer
==============================

Contains:
- Models: OperatorModel
- Repositories: SQLAlchemyOperatorRepository
"""

from inquiry_desk.workforce.infrastructure.models import OperatorModel
from inquiry_desk.workforce.infrastructure.repositories import SQLAlchemyOperatorRepository

__all__ = [
    "OperatorModel",
    "SQLAlchemyOperatorRepository",
]
