"""
Response Normalizer

Some backends (GPT-OSS) answer tool calls with the call JSON written into the
message content. This module rewrites such responses into OpenAI `tool_calls`.
"""

import copy
import json
import logging
import re
from typing import Any, Optional

from llmmux.common.utils import generate_tool_call_id

logger = logging.getLogger(__name__)

DEFAULT_REPAIR_PATTERN = "gpt-oss"

# {"name": "fn", "arguments": {
_SINGLE_TOOL_CALL_RE = re.compile(r'\{\s*"name"\s*:\s*"[^"]+"\s*,\s*"arguments"\s*:\s*\{')
# [{"name": "fn", "parameters": {   or "arguments"
_ARRAY_TOOL_CALL_RE = re.compile(
    r'\[\s*\{\s*"name"\s*:\s*"[^"]+"\s*,\s*"(parameters|arguments)"\s*:\s*\{'
)
_WHITESPACE_RE = re.compile(r"\s+")
_ARRAY_BODY_RE = re.compile(r"\[(.*)\]")

# finish reasons rewritten to "tool_calls" once calls are extracted
_REWRITTEN_FINISH_REASONS = {"stop", "length"}


def needs_repair(model: Optional[str], pattern: str = DEFAULT_REPAIR_PATTERN) -> bool:
    return bool(model) and bool(pattern) and pattern in model


def contains_tool_call(content: str) -> bool:
    return bool(_SINGLE_TOOL_CALL_RE.search(content) or _ARRAY_TOOL_CALL_RE.search(content))


def parse_tool_calls(content: str) -> list[dict[str, Any]]:
    """
    Extract tool calls from message content

    Accepts a bare `{"name", "arguments"}` object or an array of objects using
    either `parameters` or `arguments`. Entries without a name or an object of
    parameters are skipped.

    Raises:
        ValueError: Content is not valid JSON
    """
    cleaned = _WHITESPACE_RE.sub(" ", content).strip()
    if cleaned.startswith("["):
        match = _ARRAY_BODY_RE.search(cleaned)
        if not match:
            return []
        parsed = json.loads(f"[{match.group(1)}]")
    else:
        parsed = [json.loads(cleaned)]

    if not isinstance(parsed, list):
        return []

    tool_calls = []
    for tool in parsed:
        if not isinstance(tool, dict):
            continue
        params = tool.get("parameters")
        if params is None:
            params = tool.get("arguments")
        name = tool.get("name")
        if not name or not isinstance(name, str) or not isinstance(params, dict):
            continue
        tool_calls.append(
            {
                "id": generate_tool_call_id(),
                "type": "function",
                "function": {
                    "name": name,
                    "arguments": json.dumps(params, separators=(",", ":"), ensure_ascii=False),
                },
            }
        )
    return tool_calls


class ResponseNormalizer:
    """
    Rewrites pseudo tool calls into structured `tool_calls`

    Responses for models outside the repair pattern are returned as the very
    same object. Otherwise a copy is returned; the input is never mutated.
    """

    def __init__(self, pattern: str = DEFAULT_REPAIR_PATTERN):
        self.pattern = pattern

    def needs_repair(self, model: Optional[str]) -> bool:
        return needs_repair(model, self.pattern)

    def normalize(self, response: Any) -> Any:
        if not isinstance(response, dict):
            return response
        model = response.get("model")
        if not isinstance(model, str) or not self.needs_repair(model):
            return response

        choices = response.get("choices")
        if not isinstance(choices, list) or not choices:
            return response

        normalized = dict(response)
        normalized["choices"] = [
            self._normalize_choice(choice, index) for index, choice in enumerate(choices)
        ]
        return normalized

    def _normalize_choice(self, choice: Any, index: int) -> Any:
        if not isinstance(choice, dict):
            return choice
        message = choice.get("message")
        if not isinstance(message, dict):
            return choice
        content = message.get("content")
        if not isinstance(content, str) or not content or not contains_tool_call(content):
            return choice

        try:
            tool_calls = parse_tool_calls(content)
        except ValueError as e:
            logger.warning("Failed to parse tool calls from GPT-OSS response: %s", e)
            return choice
        if not tool_calls:
            return choice

        repaired = copy.deepcopy(choice)
        repaired["message"]["content"] = None
        repaired["message"]["tool_calls"] = tool_calls
        if choice.get("finish_reason") in _REWRITTEN_FINISH_REASONS:
            repaired["finish_reason"] = "tool_calls"
        logger.info("Transformed GPT-OSS tool calls for choice %d", index)
        return repaired
