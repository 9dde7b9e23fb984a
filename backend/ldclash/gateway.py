# ldclash/gateway.py
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Tuple

import httpx
from loguru import logger
from openai import APITimeoutError, OpenAI

from ldclash.config import DEFAULT_MODEL, Settings, validate_api_key
from ldclash.prompts import PromptBundle

NO_TEXT_PLACEHOLDER = "(No text was returned by the model.)"
NON_SERIALIZABLE_ERROR = "Non-serializable error"

TIMEOUT_ERRORS = (APITimeoutError, httpx.TimeoutException, TimeoutError)


class ErrorKind(str, Enum):
    UPSTREAM = "upstream"
    UPSTREAM_TIMEOUT = "upstream_timeout"


@dataclass(frozen=True)
class CompletionResult:
    text: Optional[str] = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.kind is None

    @classmethod
    def success(cls, text: str) -> "CompletionResult":
        return cls(text=text)

    @classmethod
    def failure(cls, error: str, kind: ErrorKind = ErrorKind.UPSTREAM) -> "CompletionResult":
        return cls(error=error, kind=kind)


# ---------- Error normalization ----------
def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _direct_message(exc: BaseException) -> Optional[str]:
    return _as_text(getattr(exc, "message", None)) or _as_text(str(exc))


def _nested_error_message(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict):
        return _as_text(error.get("message"))
    return _as_text(error) or _as_text(payload.get("message"))


def _provider_error_message(exc: BaseException) -> Optional[str]:
    return _nested_error_message(getattr(exc, "body", None)) or _nested_error_message(getattr(exc, "error", None))


def _response_error_message(exc: BaseException) -> Optional[str]:
    response = getattr(exc, "response", None)
    if response is None:
        return None
    try:
        payload = response.json()
    except Exception:
        return None
    return _nested_error_message(payload)


def _cause_message(exc: BaseException) -> Optional[str]:
    cause = exc.__cause__ or exc.__context__
    if cause is None:
        return None
    return _as_text(getattr(cause, "message", None)) or _as_text(str(cause))


def _serialized(exc: BaseException) -> Optional[str]:
    return json.dumps({"type": type(exc).__name__, "args": list(exc.args), **vars(exc)})


# Tried in order; the first strategy returning text wins.
ERROR_MESSAGE_STRATEGIES: Tuple[Callable[[BaseException], Optional[str]], ...] = (
    _direct_message,
    _provider_error_message,
    _response_error_message,
    _cause_message,
    _serialized,
)


def normalize_error(exc: BaseException) -> str:
    """Best-effort human-readable message for a failed completion call.

    Falls back to NON_SERIALIZABLE_ERROR when every strategy fails, including
    JSON serialization of the exception's attributes.
    """
    for strategy in ERROR_MESSAGE_STRATEGIES:
        try:
            message = strategy(exc)
        except Exception:
            continue
        if message:
            return message
    return NON_SERIALIZABLE_ERROR


# ---------- Gateway ----------
class CompletionGateway:
    """One outbound Responses API call per `complete`. No retries, no caching."""

    def __init__(self, client: Any, model: str = DEFAULT_MODEL):
        self.client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionGateway":
        api_key = validate_api_key(settings.openai_api_key)
        client = OpenAI(
            api_key=api_key,
            timeout=settings.openai_timeout_seconds,
            max_retries=0,
        )
        return cls(client, model=settings.openai_model)

    def complete(self, bundle: PromptBundle) -> CompletionResult:
        params = {
            "model": self.model,
            "instructions": bundle.instructions,
            "input": bundle.input,
            "max_output_tokens": bundle.max_output_tokens,
        }
        if bundle.temperature is not None:
            params["temperature"] = bundle.temperature

        try:
            resp = self.client.responses.create(**params)
        except TIMEOUT_ERRORS as exc:
            logger.warning(f"[GATEWAY] Completion timed out for mode={bundle.mode.value}: {exc}")
            return CompletionResult.failure(
                "The coaching model took too long to respond. Please try again.",
                ErrorKind.UPSTREAM_TIMEOUT,
            )
        except Exception as exc:
            message = normalize_error(exc)
            logger.error(f"[GATEWAY] Completion failed for mode={bundle.mode.value}: {message}")
            return CompletionResult.failure(message)

        text = getattr(resp, "output_text", None)
        if not text:
            logger.warning(f"[GATEWAY] No output text for mode={bundle.mode.value}")
            return CompletionResult.success(NO_TEXT_PLACEHOLDER)
        return CompletionResult.success(text)
