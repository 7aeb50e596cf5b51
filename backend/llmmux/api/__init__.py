"""
API Router Module Initialization
"""

from llmmux.api.deps import get_api_key_credential, get_db, get_session_credential

__all__ = [
    "get_db",
    "get_api_key_credential",
    "get_session_credential",
]
