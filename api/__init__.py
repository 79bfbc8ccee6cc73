"""
HTTP interface for the face attendance system.
"""

from .api_server import SessionRegistry, create_app, run_server

__all__ = [
    'SessionRegistry',
    'create_app',
    'run_server'
]
