"""
Inquiry Desk
============

Routes relevant forum inquiries to operators, escalates missed deadlines
and scores replies.
"""

__version__ = "1.0.0"
