"""Scrollwise HTTP API (FastAPI)."""
