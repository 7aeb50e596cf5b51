"""
OpenAI-Compatible Proxy Routes

Model listing and chat/completion forwarding under /v1.
"""

import logging
import time
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from llmmux.api.deps import ApiKeyCredentialDep, ContainerDep
from llmmux.common.errors import AppError, ResolutionError
from llmmux.common.timer import Timer
from llmmux.container import GatewayContainer
from llmmux.domain.credential import ApiKeyCredential
from llmmux.domain.openai import (
    ChatCompletionRequest,
    CompletionRequest,
    ModelList,
    ModelObject,
)
from llmmux.services.metrics_service import build_record
from llmmux.services.permission_gate import has_model_access
from llmmux.services.proxy_dispatcher import RequestKind, StreamHandle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["OpenAI Proxy"])


def _usage_tokens(body: Any) -> int:
    if isinstance(body, dict):
        usage = body.get("usage")
        if isinstance(usage, dict) and isinstance(usage.get("total_tokens"), int):
            return usage["total_tokens"]
    return 0


@router.get("/models", response_model=ModelList)
async def list_models(credential: ApiKeyCredentialDep, container: ContainerDep):
    """List models known to the gateway that this key may use"""
    created = int(time.time())
    names = sorted(
        name
        for name in container.resolver.list_all_model_names()
        if has_model_access(credential.permissions, name)
    )
    return ModelList(data=[ModelObject(id=name, created=created) for name in names])


@router.get("/models/discovery/stats")
async def discovery_stats(credential: ApiKeyCredentialDep, container: ContainerDep):
    return container.resolver.stats()


@router.post("/models/discovery/refresh")
async def refresh_discovery(credential: ApiKeyCredentialDep, container: ContainerDep):
    """Run a discovery sweep now"""
    await container.discovery.force_discovery()
    return {
        "success": True,
        "message": "Model discovery refreshed",
        "stats": container.resolver.stats(),
    }


@router.get("/models/{model}", response_model=ModelObject)
async def get_model(model: str, credential: ApiKeyCredentialDep, container: ContainerDep):
    """Get one model; access was checked from the path"""
    if container.resolver.resolve(model) is None:
        raise ResolutionError(model)
    return ModelObject(id=model, created=int(time.time()))


async def _proxy(
    kind: RequestKind,
    request: Request,
    credential: ApiKeyCredential,
    container: GatewayContainer,
    background_tasks: BackgroundTasks,
):
    # Forward the body exactly as sent; the pydantic model only validated it
    payload: dict[str, Any] = await request.json()
    model: Optional[str] = payload.get("model")
    path = request.url.path
    timer = Timer().start()

    def record(success: bool, status_code: int, tokens: int = 0, error: Optional[str] = None):
        return build_record(
            credential.id,
            model,
            success=success,
            response_time_ms=timer.elapsed_ms,
            tokens=tokens,
            request_path=path,
            status_code=status_code,
            error_message=error,
        )

    try:
        result = await container.dispatcher.dispatch(kind, payload)
    except AppError as e:
        metric = record(False, e.status_code, error=e.message)
        return JSONResponse(
            content=e.to_dict(include_details=container.settings.DEBUG),
            status_code=e.status_code,
            headers=e.headers or None,
            background=(
                BackgroundTask(container.metrics.record_request, metric) if metric else None
            ),
        )

    if isinstance(result, StreamHandle):
        async def on_finish(success: bool, error: Optional[str]) -> None:
            metric = record(success, 200, error=error)
            if metric:
                await container.metrics.record_request(metric)

        result.on_finish = on_finish
        return StreamingResponse(
            result.relay(),
            media_type=result.media_type,
            headers=result.headers,
            background=BackgroundTask(result.close),
        )

    metric = record(True, 200, tokens=_usage_tokens(result))
    if metric:
        background_tasks.add_task(container.metrics.record_request, metric)
    return JSONResponse(content=result)


@router.post("/chat/completions")
async def chat_completions(
    body: ChatCompletionRequest,
    request: Request,
    credential: ApiKeyCredentialDep,
    container: ContainerDep,
    background_tasks: BackgroundTasks,
):
    """Forward a chat completion (JSON or SSE stream depending on `stream`)"""
    return await _proxy(RequestKind.CHAT, request, credential, container, background_tasks)


@router.post("/completions")
async def completions(
    body: CompletionRequest,
    request: Request,
    credential: ApiKeyCredentialDep,
    container: ContainerDep,
    background_tasks: BackgroundTasks,
):
    """Forward a text completion (JSON or SSE stream depending on `stream`)"""
    return await _proxy(RequestKind.COMPLETION, request, credential, container, background_tasks)
