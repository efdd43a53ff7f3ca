"""
Wallpaper Plus API package.

This package provides a FastAPI application over a realtime JSON-tree
database, S3 object storage and Firebase Auth, with in-memory stand-ins for
each backend so the service runs locally and under test.
"""
