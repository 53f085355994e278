"""
HTTP API for the job scheduler.
"""

from .server import app, create_app, run_server

__all__ = ["app", "create_app", "run_server"]
