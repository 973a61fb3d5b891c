"""
Scoring Module
==============

Reply scoring (speed, quality, outcome) and operator aggregates.
"""
