"""
Integration fixtures: a started gateway wired to a mocked backend fleet
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from llmmux.domain.api_key import ApiKeyCreate, ModelPermissionsUpdate
from llmmux.domain.user import UserCreate
from llmmux.main import create_app
from llmmux.repositories.sqlalchemy import (
    SQLAlchemyApiKeyRepository,
    SQLAlchemyUserRepository,
)
from llmmux.services.api_key_service import ApiKeyService
from llmmux.services.user_service import UserService

BACKENDS = "llama:node1:9000,gpt-oss-20b:node2:9001"

SSE_EVENTS = [
    b'data: {"choices":[{"delta":{"content":"He"}}]}\n\n',
    b'data: {"choices":[{"delta":{"content":"llo"}}]}\n\n',
    b"data: [DONE]\n\n",
]


@dataclass
class FakeFleet:
    """Answers like a pair of vLLM servers; records every request"""

    models: dict[str, list[str]] = field(
        default_factory=lambda: {"node1": ["llama"], "node2": ["gpt-oss-20b", "qwen"]}
    )
    content: dict[str, str] = field(default_factory=dict)
    fail_hosts: set[str] = field(default_factory=set)
    stream_events: list[bytes] = field(default_factory=lambda: list(SSE_EVENTS))
    requests: list[httpx.Request] = field(default_factory=list)

    def chat_body(self, model: str) -> dict[str, Any]:
        return {
            "id": "chatcmpl-1",
            "object": "chat.completion",
            "model": model,
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": self.content.get(model, "Hello")},
                    "finish_reason": "stop",
                }
            ],
            "usage": {"prompt_tokens": 5, "completion_tokens": 7, "total_tokens": 12},
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host in self.fail_hosts:
            raise httpx.ConnectError("connection refused", request=request)

        path = request.url.path
        if request.method == "GET" and path == "/v1/models":
            ids = self.models.get(host, [])
            return httpx.Response(200, json={"object": "list", "data": [{"id": i} for i in ids]})

        if request.method == "POST" and path in ("/v1/chat/completions", "/v1/completions"):
            payload = json.loads(request.content)
            if payload.get("stream"):
                return httpx.Response(
                    200,
                    headers={"content-type": "text/event-stream"},
                    content=b"".join(self.stream_events),
                )
            return httpx.Response(200, json=self.chat_body(payload["model"]))

        return httpx.Response(404, json={"error": "not found"})

    def posts(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]


@dataclass
class Gateway:
    app: FastAPI
    client: AsyncClient
    fleet: FakeFleet

    @property
    def container(self):
        return self.app.state.container

    async def create_key(
        self,
        name: str = "test-key",
        permissions: Optional[ModelPermissionsUpdate] = None,
        **fields: Any,
    ) -> str:
        async with self.container.database.session_factory() as session:
            service = ApiKeyService(SQLAlchemyApiKeyRepository(session), self.container.settings)
            created = await service.create(
                ApiKeyCreate(name=name, permissions=permissions, **fields)
            )
        return created.key_value

    async def create_user(self, email: str, password: str, role: str) -> None:
        async with self.container.database.session_factory() as session:
            repo = SQLAlchemyUserRepository(session)
            role_model = await repo.get_role_by_name(role)
            await UserService(repo, self.container.settings).register(
                UserCreate(email=email, password=password, role_ids=[role_model.id])
            )

    async def login(self, email: str, password: str) -> dict[str, str]:
        response = await self.client.post(
            "/auth/login", json={"email": email, "password": password}
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}


async def start_gateway(settings_factory, fleet: Optional[FakeFleet] = None, **overrides: Any):
    fleet = fleet or FakeFleet()
    settings = settings_factory(BACKENDS=BACKENDS, **overrides)
    app = create_app(settings, transport=httpx.MockTransport(fleet))
    await app.state.container.startup()
    client = AsyncClient(transport=ASGITransport(app=app), base_url="http://gateway")
    return Gateway(app=app, client=client, fleet=fleet)


@pytest_asyncio.fixture
async def gateway(settings_factory):
    gw = await start_gateway(settings_factory)
    try:
        yield gw
    finally:
        await gw.client.aclose()
        await gw.container.shutdown()


@pytest_asyncio.fixture
async def static_gateway(settings_factory):
    gw = await start_gateway(
        settings_factory, API_KEY_SOURCE="static", API_KEYS="sk-static-1,sk-static-2"
    )
    try:
        yield gw
    finally:
        await gw.client.aclose()
        await gw.container.shutdown()


@pytest_asyncio.fixture
async def gateway_factory(settings_factory):
    """Start gateways with setting overrides; all are shut down at teardown"""
    started: list[Gateway] = []

    async def start(**overrides: Any) -> Gateway:
        gw = await start_gateway(settings_factory, **overrides)
        started.append(gw)
        return gw

    yield start
    for gw in started:
        await gw.client.aclose()
        await gw.container.shutdown()
