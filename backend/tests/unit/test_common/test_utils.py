"""
Utility function tests
"""

import re
from unittest.mock import patch

from llmmux.common.utils import generate_api_key, generate_tool_call_id, mask_key


def test_explicit_arguments_do_not_read_settings():
    with patch("llmmux.common.utils.get_settings") as get_settings:
        key = generate_api_key(prefix="sk-test-", random_bytes=8)

    get_settings.assert_not_called()
    assert re.fullmatch(r"sk-test-[0-9a-f]{16}", key)


def test_missing_arguments_fall_back_to_settings(settings):
    with patch("llmmux.common.utils.get_settings", return_value=settings):
        key = generate_api_key()

    assert key.startswith(settings.API_KEY_PREFIX)
    assert len(key) == len(settings.API_KEY_PREFIX) + 2 * settings.API_KEY_RANDOM_BYTES


def test_empty_prefix_is_kept():
    with patch("llmmux.common.utils.get_settings") as get_settings:
        key = generate_api_key(prefix="", random_bytes=4)

    get_settings.assert_not_called()
    assert re.fullmatch(r"[0-9a-f]{8}", key)


def test_tool_call_id():
    assert re.fullmatch(r"call_[0-9a-f]{12}", generate_tool_call_id())


def test_mask_key():
    assert mask_key("sk-llmmux-0123456789abcdef0123", visible=12) == "sk-llmmux-01..."
    assert mask_key("short", visible=12) == "short..."
