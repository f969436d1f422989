"""
Backend package for the house feedback API.

This package provides a FastAPI application over a pluggable record store
(in-memory, SQL or MongoDB) with an optional Google sign-in gate on the
endpoints that change data.
"""
