import json
from datetime import UTC, datetime

import pytest

from nexus.config import Settings
from nexus.features.triage.domain import Contact, Message, ModelError
from nexus.features.triage.services.context import build_context
from nexus.services.llm.base import LLMResponse, LLMUsage


class FakeBackend:
    """Scripted model backend that counts calls."""

    provider = "fake"

    def __init__(self, responses=None, usage: LLMUsage | None = None):
        self.responses = list(responses or [])
        self.usage = usage or LLMUsage(tokens=100, cost=0.0001)
        self.calls: list[dict] = []

    def queue_json(self, payload: dict) -> None:
        self.responses.append(json.dumps(payload))

    async def generate(self, prompt, wants_json=True, system_instruction=None) -> LLMResponse:
        self.calls.append(
            {"prompt": prompt, "wants_json": wants_json, "system_instruction": system_instruction}
        )
        if not self.responses:
            raise ModelError("No scripted response", provider=self.provider)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return LLMResponse(text=response, usage=self.usage, provider=self.provider)


class FakeGateway:
    """In-memory gateway; set an attribute to a dict to simulate error payloads."""

    def __init__(self):
        self.groups: dict[str, object] = {}
        self.participants: dict[str, object] = {}
        self.history: dict[str, object] = {}
        self.send_results: list[bool] = []
        self.sent: list[tuple[str, str, str]] = []
        self.calls: list[tuple] = []

    @staticmethod
    def _as_list(payload, operation):
        from nexus.features.triage.domain import GatewayPayloadError

        if isinstance(payload, Exception):
            raise payload
        if not isinstance(payload, list):
            raise GatewayPayloadError(f"Gateway {operation} error: {payload}", payload=payload)
        return payload

    async def fetch_groups(self, instance):
        self.calls.append(("fetch_groups", instance))
        return self._as_list(self.groups.get(instance, []), "fetch_groups")

    async def fetch_participants(self, instance, group_id):
        self.calls.append(("fetch_participants", instance, group_id))
        return self._as_list(self.participants.get(group_id, []), "fetch_participants")

    async def fetch_history(self, instance, group_id, limit=20):
        self.calls.append(("fetch_history", instance, group_id, limit))
        return self._as_list(self.history.get(group_id, []), "fetch_history")

    async def send_text(self, instance, recipient, text):
        self.sent.append((instance, recipient, text))
        return self.send_results.pop(0) if self.send_results else True


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def scoring_payload(score=92, should_reply=True, **overrides):
    payload = {
        "score": score,
        "intent": "partnership",
        "reasoning": "Direct high-value project lead with specific scale mentioned.",
        "shouldReply": should_reply,
        "groupDraft": "Happy to help, shall we set up a call?",
        "dmDraft": "Saw your post, I have a direct connection for this.",
    }
    payload.update(overrides)
    return payload


def make_message(message_id="m1", body="Looking for a solar partner for a 5MW project", **kw):
    defaults = {
        "sender_id": "27821112222@s.whatsapp.net",
        "sender_name": "David Chen",
        "group_id": "12036302@g.us",
        "timestamp": datetime(2024, 10, 20, tzinfo=UTC),
    }
    defaults.update(kw)
    return Message(message_id=message_id, body=body, **defaults)


def make_contact(contact_id="27821112222@s.whatsapp.net", **kw):
    defaults = {
        "display_name": "David Chen",
        "phone_number": contact_id.split("@")[0],
        "group_ids": {"12036302@g.us"},
    }
    defaults.update(kw)
    return Contact(contact_id=contact_id, **defaults)


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        EVOLUTION_API_URL="https://evo.test",
        EVOLUTION_API_KEY="evo-key",
        EVOLUTION_INSTANCE_NAME="SA",
        EVOLUTION_INSTANCE_NAME_2="UAE",
        AI_PROVIDER="openai",
        OPENAI_API_KEY="sk-test",
        TRIAGE_THRESHOLD=75,
    )


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def pipeline(test_settings, fake_backend, fake_gateway, sleep_recorder):
    return build_context(
        test_settings, backend=fake_backend, gateway=fake_gateway, sleep=sleep_recorder
    )
