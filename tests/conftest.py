"""Shared fixtures: in-memory store, mocked provider transport, service container."""

import json
from datetime import datetime
from typing import Callable, List

import httpx
import pytest

from chatdiary.api.dependencies import ServiceContainer
from chatdiary.models.chat import ChatMessage
from chatdiary.models.persona import ApiConfig
from chatdiary.services.llm_service import LLMService
from chatdiary.utils.database import MemoryStore

TODAY = "2024-05-10"


def openai_reply(text: str) -> dict:
    """A minimal chat/completions body."""
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


class FakeProvider:
    """Records requests and answers them with queued responses."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.responses: List[httpx.Response] = []

    def reply(self, text: str) -> None:
        self.responses.append(httpx.Response(200, json=openai_reply(text)))

    def fail(self, status: int, body: str = "boom") -> None:
        self.responses.append(httpx.Response(status, text=body))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            return httpx.Response(200, json=openai_reply("ok"))
        return self.responses.pop(0)

    def payload(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def msg(id: int, sender: str, text: str) -> ChatMessage:
    return ChatMessage(id=id, sender=sender, text=text)


def ms(date: str, hour: int = 12) -> int:
    """Millisecond timestamp for a local time on the given date."""
    return int(datetime.strptime(f"{date} {hour:02d}:00", "%Y-%m-%d %H:%M").timestamp() * 1000)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def llm(provider: FakeProvider) -> LLMService:
    return LLMService(temperature=0.7, transport=provider.transport)


@pytest.fixture
def api_config() -> ApiConfig:
    return ApiConfig(id="cfg", name="Test", api_key="sk-test", base_url="https://api.example.com/v1")


@pytest.fixture
def services(store: MemoryStore, llm: LLMService, sleeper: SleepRecorder) -> ServiceContainer:
    """Container with a configured API key and a fixed 'today'."""
    container = ServiceContainer(store, llm_service=llm, sleep=sleeper, today=lambda: TODAY)
    container.persona.update_api_config(
        "official", {"apiKey": "sk-test", "baseUrl": "https://api.example.com/v1"}
    )
    return container


@pytest.fixture
def make_services(llm: LLMService, sleeper: SleepRecorder) -> Callable[..., ServiceContainer]:
    def _make(store: MemoryStore) -> ServiceContainer:
        return ServiceContainer(store, llm_service=llm, sleep=sleeper, today=lambda: TODAY)

    return _make
