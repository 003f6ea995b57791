"""
Shared utilities for the Book Library API.
"""
