"""
Core app - Shared abstractions and utilities.

This app provides the pieces every other app leans on:
- API error handlers (uniform JSON error bodies)
- Health and index endpoints
"""
