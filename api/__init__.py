"""
FastAPI REST API for the Book Library.

This package provides:
- Book catalog CRUD with filtering and statistics
- Book reviews with per-book average ratings
- A uniform success/error response envelope
"""
