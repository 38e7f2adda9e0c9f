"""
FastAPI REST API for the Typing Assessment Engine.

Provides endpoints for:
- Opening an assessment from a typing test link
- Starting, typing into and restarting an attempt
- Reading the live snapshot and audit log
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
