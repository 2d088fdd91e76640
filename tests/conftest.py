"""
Shared fakes for the test suite: a scripted Ollama client and a
deterministic embedding function. No Ollama server or model downloads needed.
"""
import string

import pytest

from config import LLMSettings, RAGSettings, Settings, StorageSettings
from knowledge_store import KnowledgeStore
from session import Session


def letter_embedding(texts):
    """Bag-of-letters vectors (26 dims): texts sharing letters score high."""
    vectors = []
    for text in texts:
        lowered = text.lower()
        vectors.append([float(lowered.count(ch)) for ch in string.ascii_lowercase])
    return vectors


class FakeOllamaClient:
    """Stands in for OllamaClient. chat_stream records the call and replays a script."""

    def __init__(self, fragments=None, fail_after=None, error=None, healthy=True, model_installed=True):
        self.host = "http://fake-ollama:11434"
        self.fragments = list(fragments or [])
        self.fail_after = fail_after
        self.error = error or ConnectionError("connection reset by peer")
        self.healthy = healthy
        self.model_installed = model_installed
        self.chat_calls = []
        self.embed_calls = []
        self.stream_closed = False

    def is_healthy(self):
        return self.healthy

    def validate_model(self, model_name):
        return self.model_installed

    def chat_stream(self, messages, model, options=None):
        self.chat_calls.append({"messages": messages, "model": model, "options": options})
        return self._replay()

    def _replay(self):
        try:
            for i, fragment in enumerate(self.fragments):
                if self.fail_after is not None and i == self.fail_after:
                    raise self.error
                yield fragment
            if self.fail_after is not None and self.fail_after >= len(self.fragments):
                raise self.error
        finally:
            self.stream_closed = True

    def embed(self, texts, model):
        self.embed_calls.append({"texts": list(texts), "model": model})
        return letter_embedding(texts)


def make_settings(**overrides):
    values = dict(
        llm=LLMSettings(model="phi3", base_url="http://localhost:11434", temperature=0.7, context_length=4096),
        system_prompt="You are a helpful assistant.",
        rag=RAGSettings(embedding_model="nomic-embed-text", chunk_size=10, chunk_overlap=2, top_k=2),
        storage=StorageSettings(),
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def fake_client():
    return FakeOllamaClient(fragments=["Hel", "lo", " there"])


@pytest.fixture
def session(settings, fake_client):
    store = KnowledgeStore(
        embedding_function=lambda texts: fake_client.embed(texts, model=settings.rag.embedding_model)
    )
    return Session(settings, fake_client, store)
