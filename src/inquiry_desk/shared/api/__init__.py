"""
Shared API
==========

Middleware, exception handlers and dependency providers used by every
module router.
"""
