"""
Core functionality for the Knowledge Base File Sync API
"""

from kbsync.core.middleware import add_cors_middleware, add_security_middleware

__all__ = [
    "add_cors_middleware",
    "add_security_middleware"
]
