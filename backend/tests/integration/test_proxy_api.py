"""
OpenAI-compatible proxy API tests
"""

import json

import pytest

from llmmux.domain.api_key import ModelPermissionsUpdate


def bearer(key: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {key}"}


CHAT = {"model": "llama", "messages": [{"role": "user", "content": "hi"}]}


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_header(self, gateway):
        response = await gateway.client.get("/v1/models")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"
        assert response.json()["error"] == {
            "message": "Missing Authorization header",
            "type": "authentication_error",
            "code": "missing_authorization",
        }

    @pytest.mark.asyncio
    async def test_wrong_scheme(self, gateway):
        response = await gateway.client.get(
            "/v1/models", headers={"Authorization": "Token abc"}
        )

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid Authorization header format"

    @pytest.mark.asyncio
    async def test_unknown_key(self, gateway):
        response = await gateway.client.get("/v1/models", headers=bearer("sk-unknown"))

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid API key"

    @pytest.mark.asyncio
    async def test_whitespace_token_is_validated_verbatim(self, gateway):
        response = await gateway.client.get(
            "/v1/models", headers={"Authorization": "Bearer   "}
        )

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid API key"

    @pytest.mark.asyncio
    async def test_auth_precedes_body_validation(self, gateway):
        response = await gateway.client.post("/v1/chat/completions", json={})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_static_keys(self, static_gateway):
        ok = await static_gateway.client.get("/v1/models", headers=bearer("sk-static-2"))
        rejected = await static_gateway.client.get("/v1/models", headers=bearer("sk-other"))

        assert ok.status_code == 200
        assert rejected.status_code == 401


class TestModels:
    @pytest.mark.asyncio
    async def test_lists_static_and_discovered_models(self, gateway):
        key = await gateway.create_key()

        response = await gateway.client.get("/v1/models", headers=bearer(key))

        assert response.status_code == 200
        data = response.json()
        assert data["object"] == "list"
        assert [m["id"] for m in data["data"]] == ["gpt-oss-20b", "llama", "qwen"]
        assert all(m["object"] == "model" and m["owned_by"] == "vllm" for m in data["data"])

    @pytest.mark.asyncio
    async def test_listing_is_filtered_by_permissions(self, gateway):
        denied = await gateway.create_key(
            "denied", permissions=ModelPermissionsUpdate(denied_models=["qwen"])
        )
        allowed = await gateway.create_key(
            "allowed",
            permissions=ModelPermissionsUpdate(allow_all=False, allowed_models=["llama"]),
        )

        async def listed(key: str) -> list[str]:
            response = await gateway.client.get("/v1/models", headers=bearer(key))
            return [m["id"] for m in response.json()["data"]]

        assert await listed(denied) == ["gpt-oss-20b", "llama"]
        assert await listed(allowed) == ["llama"]

    @pytest.mark.asyncio
    async def test_get_model(self, gateway):
        key = await gateway.create_key()

        response = await gateway.client.get("/v1/models/qwen", headers=bearer(key))

        assert response.status_code == 200
        assert response.json()["id"] == "qwen"

    @pytest.mark.asyncio
    async def test_get_unknown_model(self, gateway):
        key = await gateway.create_key()

        response = await gateway.client.get("/v1/models/mystery", headers=bearer(key))

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Model 'mystery' not found"

    @pytest.mark.asyncio
    async def test_get_denied_model(self, gateway):
        key = await gateway.create_key(
            permissions=ModelPermissionsUpdate(denied_models=["qwen"])
        )

        response = await gateway.client.get("/v1/models/qwen", headers=bearer(key))

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Access denied to model: qwen"

    @pytest.mark.asyncio
    async def test_discovery_stats_and_refresh(self, gateway):
        key = await gateway.create_key()

        stats = await gateway.client.get("/v1/models/discovery/stats", headers=bearer(key))
        gateway.fleet.models["node1"].append("mistral")
        refreshed = await gateway.client.post("/v1/models/discovery/refresh", headers=bearer(key))

        assert stats.status_code == 200
        assert stats.json() == {
            "static_backends": 2,
            "discovered_backends": 3,
            "total_models": 3,
            "discovery_enabled": True,
        }
        assert refreshed.status_code == 200
        body = refreshed.json()
        assert body["success"] is True
        assert body["message"] == "Model discovery refreshed"
        assert body["stats"]["total_models"] == 4


class TestChatCompletions:
    @pytest.mark.asyncio
    async def test_forwards_to_model_backend(self, gateway):
        key = await gateway.create_key()
        payload = {**CHAT, "temperature": 0.2, "top_k": 3}

        response = await gateway.client.post(
            "/v1/chat/completions", json=payload, headers=bearer(key)
        )

        assert response.status_code == 200
        assert response.json()["choices"][0]["message"]["content"] == "Hello"
        [upstream] = gateway.fleet.posts()
        assert str(upstream.url) == "http://node1:9000/v1/chat/completions"
        assert json.loads(upstream.content) == payload

    @pytest.mark.asyncio
    async def test_completions_route(self, gateway):
        key = await gateway.create_key()

        response = await gateway.client.post(
            "/v1/completions", json={"model": "qwen", "prompt": "hi"}, headers=bearer(key)
        )

        assert response.status_code == 200
        [upstream] = gateway.fleet.posts()
        assert str(upstream.url) == "http://node2:9001/v1/completions"

    @pytest.mark.asyncio
    async def test_gpt_oss_tool_calls_are_repaired(self, gateway):
        gateway.fleet.content["gpt-oss-20b"] = (
            '{"name": "get_weather", "arguments": {"location": "Boston"}}'
        )
        key = await gateway.create_key()

        response = await gateway.client.post(
            "/v1/chat/completions",
            json={**CHAT, "model": "gpt-oss-20b"},
            headers=bearer(key),
        )

        choice = response.json()["choices"][0]
        assert choice["finish_reason"] == "tool_calls"
        assert choice["message"]["content"] is None
        [call] = choice["message"]["tool_calls"]
        assert call["type"] == "function"
        assert call["function"]["name"] == "get_weather"
        assert json.loads(call["function"]["arguments"]) == {"location": "Boston"}

    @pytest.mark.asyncio
    async def test_streaming_relays_events(self, gateway):
        key = await gateway.create_key()

        response = await gateway.client.post(
            "/v1/chat/completions", json={**CHAT, "stream": True}, headers=bearer(key)
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.content == b"".join(gateway.fleet.stream_events)

    @pytest.mark.asyncio
    async def test_unknown_model(self, gateway):
        key = await gateway.create_key()

        response = await gateway.client.post(
            "/v1/chat/completions", json={**CHAT, "model": "mystery"}, headers=bearer(key)
        )

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Model 'mystery' not found"
        assert gateway.fleet.posts() == []

    @pytest.mark.asyncio
    async def test_denied_model(self, gateway):
        key = await gateway.create_key(
            permissions=ModelPermissionsUpdate(allow_all=False, allowed_models=["qwen"])
        )

        response = await gateway.client.post(
            "/v1/chat/completions", json=CHAT, headers=bearer(key)
        )

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Access denied to model: llama"
        assert gateway.fleet.posts() == []

    @pytest.mark.asyncio
    async def test_backend_unreachable(self, gateway):
        key = await gateway.create_key()
        gateway.fleet.fail_hosts.add("node1")

        response = await gateway.client.post(
            "/v1/chat/completions", json=CHAT, headers=bearer(key)
        )

        assert response.status_code == 502
        assert response.json()["error"]["message"] == (
            "Failed to proxy request: connection refused"
        )

    @pytest.mark.asyncio
    async def test_stream_open_failure(self, gateway):
        key = await gateway.create_key()
        gateway.fleet.fail_hosts.add("node1")

        response = await gateway.client.post(
            "/v1/chat/completions", json={**CHAT, "stream": True}, headers=bearer(key)
        )

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Streaming request failed"

    @pytest.mark.asyncio
    async def test_rate_limit(self, gateway):
        key = await gateway.create_key(rate_limit_rpm=1)

        first = await gateway.client.post("/v1/chat/completions", json=CHAT, headers=bearer(key))
        second = await gateway.client.post("/v1/chat/completions", json=CHAT, headers=bearer(key))

        assert first.status_code == 200
        assert second.status_code == 429
        assert int(second.headers["retry-after"]) >= 1
        assert second.json()["error"]["code"] == "rate_limit_exceeded"


class TestUsageRecording:
    @pytest.mark.asyncio
    async def test_success_failure_and_stream_are_recorded(self, gateway):
        key = await gateway.create_key()
        headers = bearer(key)

        await gateway.client.post("/v1/chat/completions", json=CHAT, headers=headers)
        await gateway.client.post(
            "/v1/chat/completions", json={**CHAT, "stream": True}, headers=headers
        )
        await gateway.client.post(
            "/v1/chat/completions", json={**CHAT, "model": "mystery"}, headers=headers
        )

        [usage] = await gateway.container.metrics.get_all_metrics()
        assert usage.total_requests == 3
        assert usage.successful_requests == 2
        assert usage.failed_requests == 1
        assert usage.total_tokens == 12
        assert usage.model_metrics["llama"].total_requests == 2
        assert usage.model_metrics["mystery"].failed_requests == 1
        assert usage.last_request_at is not None

    @pytest.mark.asyncio
    async def test_denied_and_rate_limited_requests_are_failures(self, gateway):
        key = await gateway.create_key(
            rate_limit_rpm=1,
            permissions=ModelPermissionsUpdate(denied_models=["qwen"]),
        )
        headers = bearer(key)

        denied = await gateway.client.post(
            "/v1/chat/completions", json={**CHAT, "model": "qwen"}, headers=headers
        )
        ok = await gateway.client.post("/v1/chat/completions", json=CHAT, headers=headers)
        limited = await gateway.client.post("/v1/chat/completions", json=CHAT, headers=headers)

        assert (denied.status_code, ok.status_code, limited.status_code) == (403, 200, 429)
        [usage] = await gateway.container.metrics.get_all_metrics()
        assert usage.total_requests == 3
        assert usage.failed_requests == 2
        assert usage.model_metrics["qwen"].failed_requests == 1
        assert usage.model_metrics["llama"].successful_requests == 1
        assert usage.model_metrics["llama"].failed_requests == 1

    @pytest.mark.asyncio
    async def test_static_keys_are_not_recorded(self, static_gateway):
        await static_gateway.client.post(
            "/v1/chat/completions", json=CHAT, headers=bearer("sk-static-1")
        )

        summary = await static_gateway.container.metrics.get_summary()
        assert summary.total_requests == 0


def read_timeouts(requests) -> set[float]:
    return {r.extensions["timeout"]["read"] for r in requests}


class TestOutboundTimeouts:
    @pytest.mark.asyncio
    async def test_default_budgets(self, gateway):
        key = await gateway.create_key()
        discovery = list(gateway.fleet.requests)

        await gateway.client.post("/v1/chat/completions", json=CHAT, headers=bearer(key))
        await gateway.client.post(
            "/v1/chat/completions", json={**CHAT, "stream": True}, headers=bearer(key)
        )
        await gateway.client.post(
            "/v1/completions", json={"model": "qwen", "prompt": "hi"}, headers=bearer(key)
        )

        assert len(discovery) == 2
        assert read_timeouts(discovery) == {5.0}
        assert len(gateway.fleet.posts()) == 3
        assert read_timeouts(gateway.fleet.posts()) == {120.0}

    @pytest.mark.asyncio
    async def test_configured_budgets(self, gateway_factory):
        gw = await gateway_factory(
            DISCOVERY_TIMEOUT_MS=1500,
            PROXY_TIMEOUT_MS=30000,
            HEALTH_TIMEOUT_MS=2500,
        )
        key = await gw.create_key()
        discovery = list(gw.fleet.requests)
        gw.fleet.requests.clear()

        await gw.client.get("/healthz")
        health = list(gw.fleet.requests)
        await gw.client.post("/v1/chat/completions", json=CHAT, headers=bearer(key))

        assert read_timeouts(discovery) == {1.5}
        assert len(health) == 3
        assert read_timeouts(health) == {2.5}
        assert read_timeouts(gw.fleet.posts()) == {30.0}
