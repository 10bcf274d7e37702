# backend/tests/conftest.py

import os
import tempfile

# Settings are read at import time, so the test environment must be in place first.
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(
    tempfile.gettempdir(), f"clinassist_test_{os.getpid()}.db"
)
os.environ["GEMINI_API_KEY"] = ""
os.environ["HF_API_TOKEN"] = ""
os.environ["OPENAI_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient

from clinassist.core.dependencies import get_clinical_service, get_summary_queue
from clinassist.db.session import SessionLocal, init_db
from clinassist.main import app
from clinassist.services.article_summary import ArticleSummaryQueue
from clinassist.services.clinical_pipeline import ClinicalAiService
from clinassist.services.provider_gateway import (
    GenerationProvider,
    ProviderResponse,
    estimate_token_count,
)
from clinassist.services.provider_router import ProviderRouter


class FakeProvider(GenerationProvider):
    """
    Scripted provider: returns replies in order (the last one repeats)
    or raises the configured error. Records every prompt it receives.
    """

    def __init__(self, provider_id="gemini", replies=(), error=None, available=True):
        super().__init__()
        self.provider_id = provider_id
        self.replies = list(replies)
        self.error = error
        self.available = available
        self.calls = []

    @property
    def model(self):
        return f"{self.provider_id}-fake"

    def is_configured(self):
        return True

    def generate(self, prompt):
        self.calls.append(prompt)
        if self.error is not None:
            raise self.error
        if len(self.replies) > 1:
            text = self.replies.pop(0)
        else:
            text = self.replies[0] if self.replies else ""
        return ProviderResponse(
            text=text,
            provider=self.provider_id,
            model=self.model,
            elapsed_ms=5,
            token_estimate=estimate_token_count(text),
        )

    def probe(self):
        return self.available


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def make_router():
    def _make(
        primary_replies=(),
        primary_error=None,
        secondary_replies=(),
        secondary_error=None,
        fallback_enabled=True,
    ):
        primary = FakeProvider("gemini", primary_replies, primary_error)
        secondary = FakeProvider("huggingface", secondary_replies, secondary_error)
        return ProviderRouter(primary, secondary, fallback_enabled=fallback_enabled)

    return _make


@pytest.fixture
def make_service(make_router):
    def _make(**kwargs):
        return ClinicalAiService(make_router(**kwargs))

    return _make


@pytest.fixture
def db_session():
    init_db()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def service_override():
    """
    Swap the app's clinical service (and summary queue) for ones backed by
    fake providers. Returns a setter taking the ClinicalAiService to use.
    """
    queues = []

    def _set(service: ClinicalAiService):
        queue = ArticleSummaryQueue(router=service.router, max_workers=1)
        queues.append(queue)
        app.dependency_overrides[get_clinical_service] = lambda: service
        app.dependency_overrides[get_summary_queue] = lambda: queue
        return queue

    yield _set

    app.dependency_overrides.clear()
    for q in queues:
        q.shutdown(wait=True)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def user_headers():
    return {"X-User-Id": "clinician-1"}
