"""
OpenAI Wire Models

Inbound request shapes and model-listing responses. Request models keep
unknown fields so sampling parameters pass through to the backend untouched.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ChatCompletionRequest(BaseModel):
    """POST /v1/chat/completions body"""

    model_config = ConfigDict(extra="allow")

    model: str = Field(..., min_length=1)
    messages: list[dict[str, Any]]
    stream: Optional[bool] = False


class CompletionRequest(BaseModel):
    """POST /v1/completions body"""

    model_config = ConfigDict(extra="allow")

    model: str = Field(..., min_length=1)
    prompt: Union[str, list[Any]]
    stream: Optional[bool] = False


class ModelObject(BaseModel):
    """One entry of the model list"""

    id: str
    object: str = "model"
    created: int
    owned_by: str = "vllm"


class ModelList(BaseModel):
    """GET /v1/models response"""

    object: str = "list"
    data: list[ModelObject] = Field(default_factory=list)
