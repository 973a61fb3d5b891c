"""
Lifecycle Module
================

Inquiry state machine, deadlines, escalation sweep and activity trail.
"""
