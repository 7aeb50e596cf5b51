"""
Utility Functions Module

Key generation, masking and other small helpers shared across services.
"""

import secrets
from typing import Optional

from llmmux.config import get_settings


def generate_api_key(
    prefix: Optional[str] = None,
    random_bytes: Optional[int] = None,
) -> str:
    """
    Generate a random API Key

    Uses the secrets module for a cryptographically secure token.

    Args:
        prefix: Key prefix, defaults to API_KEY_PREFIX
        random_bytes: Random byte count, defaults to API_KEY_RANDOM_BYTES

    Returns:
        str: Generated key, e.g. "sk-llmmux-3f9a..."
    """
    if prefix is None or random_bytes is None:
        settings = get_settings()
        prefix = settings.API_KEY_PREFIX if prefix is None else prefix
        random_bytes = settings.API_KEY_RANDOM_BYTES if random_bytes is None else random_bytes
    return f"{prefix}{secrets.token_hex(random_bytes)}"


def generate_tool_call_id() -> str:
    """Opaque id for a synthesized tool call, e.g. "call_k3j9x0a1b2c3"."""
    return f"call_{secrets.token_hex(6)}"


def mask_key(key: str, visible: int = 20) -> str:
    """
    Mask an API key for display and logging

    Example:
        >>> mask_key("sk-llmmux-0123456789abcdef0123", visible=12)
        'sk-llmmux-01...'
    """
    if len(key) <= visible:
        return key[: max(1, visible // 2)] + "..."
    return key[:visible] + "..."
