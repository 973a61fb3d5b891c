"""
Workforce Module
================

Operators, their aggregates, and least-recently-assigned balancing.
"""
