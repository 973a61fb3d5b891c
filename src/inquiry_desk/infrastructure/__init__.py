"""
Infrastructure Package
======================

Technical building blocks without business rules:
- database: async engine, session lifecycle, declarative base
- pipeline: hot-reloadable pipeline tuning configuration
"""
