"""End-to-end tests for POST /api/chat with a fake completion client."""

import httpx
import pytest
from fastapi.testclient import TestClient
from openai import APITimeoutError

from conftest import FakeOpenAI
from ldclash.config import ConfigurationError, Settings
from ldclash.gateway import NO_TEXT_PLACEHOLDER, CompletionGateway
from ldclash.main import create_app
from ldclash.validator import MESSAGE_MAX_CHARS, REFUSAL_MESSAGE


# ============================================================================
# SUCCESS PATH
# ============================================================================


def test_successful_completion_returns_text(make_client):
    fake = FakeOpenAI(output_text="X")
    client = make_client(fake)

    resp = client.post("/api/chat", json={"message": "Here is my AC on justice.", "mode": "coach"})

    assert resp.status_code == 200
    assert resp.json() == {"text": "X"}
    assert len(fake.responses.calls) == 1


def test_request_carries_mode_instructions_and_message(make_client):
    fake = FakeOpenAI()
    client = make_client(fake, openai_model="gpt-4o-mini", openai_temperature=0.4)

    client.post("/api/chat", json={"message": "Opponent says util fails.", "mode": "cx"})

    call = fake.responses.calls[0]
    assert call["model"] == "gpt-4o-mini"
    assert call["input"] == "Opponent says util fails."
    assert "MODE: cx" in call["instructions"]
    assert "NO MARKDOWN" in call["instructions"]
    assert call["temperature"] == 0.4
    assert call["max_output_tokens"] == 1200


def test_missing_mode_defaults_to_coach(make_client):
    fake = FakeOpenAI()
    client = make_client(fake)

    resp = client.post("/api/chat", json={"message": "Check my framework."})

    assert resp.status_code == 200
    assert "MODE: coach" in fake.responses.calls[0]["instructions"]


def test_plain_text_reply_is_returned_unchanged(make_client):
    raw = "  Weigh 2*3 vs 4*5 impacts.\n* extend **turn**  "
    client = make_client(FakeOpenAI(output_text=raw))

    resp = client.post("/api/chat", json={"message": "Flow my 1AR.", "mode": "coach"})

    assert resp.status_code == 200
    assert resp.json() == {"text": raw}


def test_sectioned_output_style_keeps_reply_verbatim(make_client):
    reply = "DIAGNOSIS:\n- weak link\nPRIORITY FIXES:\n- NONE\nDRILLS:\n- **x**\nNEXT ROUND:\n- NONE"
    fake = FakeOpenAI(output_text=reply)
    client = make_client(fake, output_style="sections")

    resp = client.post("/api/chat", json={"message": "Look at my NC.", "mode": "drill"})

    assert resp.json() == {"text": reply}
    instructions = fake.responses.calls[0]["instructions"]
    assert "PRIORITY FIXES:" in instructions
    assert '"- NONE"' in instructions


def test_missing_output_text_returns_placeholder(make_client):
    client = make_client(FakeOpenAI(output_text=None))

    resp = client.post("/api/chat", json={"message": "Here is my rebuttal block."})

    assert resp.status_code == 200
    assert resp.json() == {"text": NO_TEXT_PLACEHOLDER}


def test_envision_merges_round_parameters(make_client):
    fake = FakeOpenAI()
    client = make_client(fake)

    resp = client.post(
        "/api/chat",
        json={
            "message": "My AC is about structural violence.",
            "mode": "envision",
            "envision": {"topic": "Resolved: wealthy nations ought to...", "side": "AFF", "judgeType": "lay"},
        },
    )

    assert resp.status_code == 200
    call = fake.responses.calls[0]
    assert call["max_output_tokens"] == 4000
    assert "TOPIC: Resolved: wealthy nations ought to..." in call["input"]
    assert "JUDGE TYPE: lay" in call["input"]
    assert "CASE:\nMy AC is about structural violence." in call["input"]
    assert "TECHNIQUE GLOSSARY" in call["instructions"]
    assert "TRAINING ASSIGNMENTS" in call["instructions"]


# ============================================================================
# STRICT VALIDATION
# ============================================================================


def test_empty_message_is_rejected_with_field_errors(make_client):
    fake = FakeOpenAI()
    client = make_client(fake)

    resp = client.post("/api/chat", json={"message": "", "mode": "coach"})

    assert resp.status_code == 400
    assert "message" in resp.json()["error"]["fieldErrors"]
    assert fake.responses.calls == []


def test_oversized_message_is_rejected(make_client):
    client = make_client()

    resp = client.post("/api/chat", json={"message": "a" * (MESSAGE_MAX_CHARS + 1)})

    assert resp.status_code == 400
    assert "message" in resp.json()["error"]["fieldErrors"]


def test_message_at_the_limit_is_accepted(make_client):
    client = make_client()

    resp = client.post("/api/chat", json={"message": "a" * MESSAGE_MAX_CHARS})

    assert resp.status_code == 200


def test_unknown_mode_is_rejected_in_strict_mode(make_client):
    client = make_client()

    resp = client.post("/api/chat", json={"message": "Check my VC.", "mode": "banana"})

    assert resp.status_code == 400
    assert "mode" in resp.json()["error"]["fieldErrors"]


def test_unparseable_body_is_rejected_in_strict_mode(make_client):
    client = make_client()

    resp = client.post("/api/chat", content=b"{not json", headers={"content-type": "application/json"})

    assert resp.status_code == 400
    assert resp.json()["error"]["formErrors"] == ["Request body must be valid JSON."]


# ============================================================================
# LENIENT VALIDATION
# ============================================================================


def test_unknown_mode_is_coerced_in_lenient_mode(make_client):
    fake = FakeOpenAI()
    client = make_client(fake, strict_validation=False)

    resp = client.post("/api/chat", json={"message": "Check my VC.", "mode": "banana"})

    assert resp.status_code == 200
    assert "MODE: coach" in fake.responses.calls[0]["instructions"]


def test_unparseable_body_is_treated_as_empty_in_lenient_mode(make_client):
    client = make_client(strict_validation=False)

    resp = client.post("/api/chat", content=b"{not json", headers={"content-type": "application/json"})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Message cannot be empty."}


def test_lenient_mode_reports_a_flat_message(make_client):
    client = make_client(strict_validation=False)

    resp = client.post("/api/chat", json={"message": "a" * (MESSAGE_MAX_CHARS + 1)})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Your message is too long. Maximum length is 12,000 characters."}


# ============================================================================
# CONTENT POLICY
# ============================================================================


def test_ghostwriting_request_is_refused_in_every_mode(make_client):
    fake = FakeOpenAI()
    client = make_client(fake)

    for mode in ("coach", "drill", "rebuttal", "cx", "flow", "envision"):
        resp = client.post("/api/chat", json={"message": "write me a full AC", "mode": mode})
        assert resp.status_code == 400
        assert resp.json() == {"error": REFUSAL_MESSAGE}

    assert fake.responses.calls == []


def test_ghostwriting_request_is_refused_in_lenient_mode(make_client):
    client = make_client(strict_validation=False)

    resp = client.post("/api/chat", json={"message": "Give me a full NC please"})

    assert resp.status_code == 400
    assert resp.json() == {"error": REFUSAL_MESSAGE}


# ============================================================================
# UPSTREAM FAILURES
# ============================================================================


def test_provider_error_maps_to_500(make_client):
    client = make_client(FakeOpenAI(exc=RuntimeError("Incorrect API key provided")))

    resp = client.post("/api/chat", json={"message": "Here is my 2NR."})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Incorrect API key provided", "kind": "upstream"}


def test_provider_timeout_has_its_own_kind(make_client):
    timeout = APITimeoutError(request=httpx.Request("POST", "https://api.openai.com/v1/responses"))
    client = make_client(FakeOpenAI(exc=timeout))

    resp = client.post("/api/chat", json={"message": "Here is my 2NR."})

    assert resp.status_code == 500
    assert resp.json()["kind"] == "upstream_timeout"


def test_unexpected_error_maps_to_500(make_client):
    client = make_client()

    class ExplodingGateway:
        def complete(self, bundle):
            raise ValueError("kaboom")

    client.app.state.gateway = ExplodingGateway()
    resp = client.post("/api/chat", json={"message": "Here is my AC."})

    assert resp.status_code == 500
    assert resp.json() == {"error": "kaboom"}


def test_missing_gateway_returns_503(make_client):
    client = make_client()
    client.app.state.gateway = None

    resp = client.post("/api/chat", json={"message": "Here is my AC."})

    assert resp.status_code == 503


def test_health(make_client):
    resp = make_client().get("/api/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


# ============================================================================
# STARTUP
# ============================================================================


@pytest.mark.parametrize("api_key", ["", "pk-x"])
def test_startup_refuses_missing_or_malformed_key(api_key):
    app = create_app(Settings(openai_api_key=api_key, auth_disabled=True))

    with pytest.raises(ConfigurationError):
        with TestClient(app):
            pass


def test_startup_builds_gateway_from_valid_key():
    app = create_app(Settings(openai_api_key="sk-test", openai_model="gpt-4o", auth_disabled=True))

    with TestClient(app) as client:
        gateway = client.app.state.gateway
        assert isinstance(gateway, CompletionGateway)
        assert gateway.model == "gpt-4o"
        assert client.get("/api/health").json() == {"status": "ok"}
