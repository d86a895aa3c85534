import httpx
import pytest

from nexus.config import Settings
from nexus.features.triage.domain import ConfigError, GatewayPayloadError, TransportError
from nexus.features.triage.services.context import build_context
from nexus.infrastructure.observability.logging import setup_logging
from nexus.services.gateway import EvolutionGatewayClient


def _client(handler, **overrides) -> EvolutionGatewayClient:
    values = {
        "EVOLUTION_API_URL": "https://evo.test/",
        "EVOLUTION_API_KEY": "evo-key",
        "GATEWAY_MAX_RETRIES": 1,
    }
    values.update(overrides)
    return EvolutionGatewayClient(
        Settings(_env_file=None, **values), transport=httpx.MockTransport(handler)
    )


@pytest.mark.asyncio
async def test_fetch_groups_returns_list_and_sends_api_key():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["apikey"] = request.headers.get("apikey")
        return httpx.Response(200, json=[{"id": "1@g.us", "subject": "EO"}])

    client = _client(handler)
    groups = await client.fetch_groups("SA")
    await client.close()

    assert groups == [{"id": "1@g.us", "subject": "EO"}]
    assert seen == {"path": "/group/fetchAllGroups/SA", "apikey": "evo-key"}


@pytest.mark.asyncio
async def test_error_object_raises_payload_error():
    def handler(request):
        return httpx.Response(404, json={"status": 404, "error": "Instance not found"})

    client = _client(handler)
    with pytest.raises(GatewayPayloadError) as exc_info:
        await client.fetch_groups("missing")

    assert "Instance not found" in str(exc_info.value)
    assert exc_info.value.payload["status"] == 404


@pytest.mark.asyncio
async def test_empty_list_is_success():
    client = _client(lambda request: httpx.Response(200, json=[]))

    assert await client.fetch_participants("SA", "1@g.us") == []


@pytest.mark.asyncio
async def test_history_query_parameters():
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        return httpx.Response(200, json=[])

    client = _client(handler)
    await client.fetch_history("SA", "1@g.us", limit=20)

    assert seen == {"where[key.remoteJid]": "1@g.us", "limit": "20"}


@pytest.mark.asyncio
async def test_connection_failure_raises_transport_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler)
    with pytest.raises(TransportError):
        await client.fetch_groups("SA")


@pytest.mark.asyncio
async def test_missing_configuration_short_circuits():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=[])

    client = _client(handler, EVOLUTION_API_KEY=None)
    with pytest.raises(ConfigError):
        await client.fetch_groups("SA")
    assert calls == []


@pytest.mark.asyncio
async def test_send_text_reports_delivery_status():
    bodies = []

    def handler(request):
        bodies.append(request.content)
        status = 201 if b"ok" in request.content else 500
        return httpx.Response(status, json={})

    client = _client(handler)

    assert await client.send_text("SA", "2782@s.whatsapp.net", "ok then") is True
    assert await client.send_text("SA", "2782@s.whatsapp.net", "fail") is False
    assert b'"number"' in bodies[0]


@pytest.mark.asyncio
async def test_send_text_is_never_retried():
    posts = []

    def handler(request):
        posts.append(request)
        return httpx.Response(503 if len(posts) == 1 else 201, json={})

    client = _client(handler, GATEWAY_MAX_RETRIES=3)

    assert await client.send_text("SA", "2782@s.whatsapp.net", "hello") is False
    assert len(posts) == 1


@pytest.mark.asyncio
async def test_group_sweep_through_real_client(test_settings, fake_backend):
    setup_logging("INFO")

    def handler(request):
        if request.url.path.endswith("/UAE"):
            return httpx.Response(200, json=[{"id": "2@g.us", "subject": "Tech Founders"}])
        return httpx.Response(200, json=[{"id": "1@g.us", "subject": "EO JHB", "size": 85}])

    gateway = EvolutionGatewayClient(test_settings, transport=httpx.MockTransport(handler))
    pipeline = build_context(test_settings, backend=fake_backend, gateway=gateway)

    groups = await pipeline.sync.sync_groups()
    await pipeline.close()

    assert {g.jid: g.instance for g in groups} == {"1@g.us": "SA", "2@g.us": "UAE"}
    assert pipeline.activity.errors() == []
