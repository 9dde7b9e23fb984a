"""Shared fixtures: a fake Responses API client and an app factory that injects it."""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from ldclash.config import Settings
from ldclash.gateway import CompletionGateway
from ldclash.main import create_app


class FakeResponses:
    """Stands in for `OpenAI().responses`; records every create() call."""

    def __init__(self, output_text="X", exc=None):
        self.output_text = output_text
        self.exc = exc
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.exc is not None:
            raise self.exc
        return SimpleNamespace(output_text=self.output_text)


class FakeOpenAI:
    def __init__(self, output_text="X", exc=None):
        self.responses = FakeResponses(output_text=output_text, exc=exc)


@pytest.fixture
def make_client():
    """Build a TestClient around an app with the given settings and fake completion client.

    The Basic auth gate is off unless a test passes auth_disabled=False.
    """

    def _make(fake=None, **settings_overrides):
        settings_overrides.setdefault("auth_disabled", True)
        settings = Settings(**settings_overrides)
        gateway = CompletionGateway(fake or FakeOpenAI(), model=settings.openai_model)
        return TestClient(create_app(settings, gateway=gateway))

    return _make
