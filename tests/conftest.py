"""Shared fixtures: a scripted language model and the in-memory store."""

import json
import threading

import pytest

from lore_catalog.llm import LLMClient, LLMError
from lore_catalog.models import Container
from lore_catalog.store import InMemoryStore


class FakeLLM(LLMClient):
    """Language model double that answers from a script instead of the network.

    ``responder`` is either a fixed reply, or a callable taking the message list
    and returning a reply (or raising LLMError).
    """

    def __init__(self, responder="", available: bool = True):
        super().__init__(provider="ollama", model="fake")
        self.responder = responder
        self.available = available
        self.calls: list[list[dict]] = []
        self._lock = threading.Lock()

    def chat(self, messages, temperature=0.3, max_tokens=2000, json_mode=False, timeout=None):
        with self._lock:
            self.calls.append(messages)
        if callable(self.responder):
            return self.responder(messages)
        return self.responder

    def stream(self, messages, temperature=0.7, max_tokens=900, timeout=None):
        yield self.chat(messages)

    @property
    def is_available(self) -> bool:
        return self.available


def entries_reply(*entries) -> str:
    return json.dumps({"entries": list(entries)})


def failing(messages):
    raise LLMError("connection refused")


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def world(store):
    return store.save_container(Container(name="AntiVerso", prefix="AV", hierarchy_id="u1", owner_id="owner-1"))


@pytest.fixture
def fake_llm():
    return FakeLLM()
