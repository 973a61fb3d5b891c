"""
Intake Module
=============

Deduplication and relevance filtering of scraped candidate inquiries.
"""
