"""
Shared fixtures for the CampusHelp tests: a fake chat model, an in-memory
transcript store, and a router over the built-in category table.
"""

from typing import Dict, List

import pytest
from langchain_core.messages import AIMessageChunk

from agents.categories import CategoryTable
from agents.router import IntentRouter
from memory.schemas import ChatMessage

WELCOME = "Hi! I'm CampusHelp."


class FakeStreamingLLM:
    """Stands in for ChatOpenAI: records inputs, streams canned chunks."""

    model_name = "fake/campushelp-test"

    def __init__(self, chunks=None, error=None, on_chunk=None):
        self.chunks = list(chunks or [])
        self.error = error
        self.on_chunk = on_chunk
        self.calls: List[list] = []

    def stream(self, messages):
        self.calls.append(messages)
        for idx, piece in enumerate(self.chunks):
            yield piece if isinstance(piece, AIMessageChunk) else AIMessageChunk(content=piece)
            if self.on_chunk is not None:
                self.on_chunk(idx)
        # ``error`` is raised once the canned chunks run out
        if self.error is not None:
            raise self.error


class InMemoryTranscriptStore:
    def __init__(self, preset: Dict[str, List[ChatMessage]] = None, fail_save=False):
        self.data = dict(preset or {})
        self.fail_save = fail_save
        self.saves = 0

    def initial(self):
        return [ChatMessage(role="assistant", text=WELCOME)]

    def load(self, key):
        return list(self.data.get(key) or self.initial())

    def save(self, key, messages):
        if self.fail_save:
            raise RuntimeError("disk full")
        self.saves += 1
        self.data[key] = list(messages)

    def clear(self, key):
        self.data.pop(key, None)


@pytest.fixture
def categories():
    return CategoryTable()


@pytest.fixture
def router(categories):
    return IntentRouter(categories, persona="You are CampusHelp.")


@pytest.fixture
def store():
    return InMemoryTranscriptStore()


@pytest.fixture
def make_llm():
    """Factory for fake streaming chat models."""
    return FakeStreamingLLM


@pytest.fixture
def make_store():
    """Factory for in-memory transcript stores."""
    return InMemoryTranscriptStore
