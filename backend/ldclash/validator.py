# ldclash/validator.py
import re
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ldclash.modes import Mode, coerce_mode

MESSAGE_MAX_CHARS = 12000
ENVISION_FIELD_MAX_CHARS = 2000

# Heuristic only: misses paraphrased requests, and also catches e.g. "help me write a rebuttal outline for my case".
# Screened against the message and the envision case text, the two fields sent to the model as the case.
GHOSTWRITING_PATTERN = re.compile(
    r"(write|generate|draft).*(case|speech|AC|NC|1AR|2NR)|give me (a )?full (AC|NC|1AR|2NR)",
    re.IGNORECASE,
)

REFUSAL_MESSAGE = (
    "No ghostwriting. Paste YOUR draft and I’ll diagnose + outline fixes + drills "
    "(not generate full speeches)."
)

# Marks a request body that could not be parsed as JSON.
UNPARSEABLE = object()

ErrorPayload = Union[str, Dict[str, Any]]


class ChatValidationError(Exception):
    """A request the caller can fix and resubmit; maps to HTTP 400."""

    status_code = 400

    def __init__(self, payload: ErrorPayload):
        super().__init__(payload if isinstance(payload, str) else "Invalid request")
        self.payload = payload


# ---------- Schemas ----------
class EnvisionFields(BaseModel):
    """Round parameters for envision mode. Every field is optional; extra keys are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    topic: Optional[str] = Field(default=None, max_length=ENVISION_FIELD_MAX_CHARS)
    side: Optional[str] = Field(default=None, max_length=ENVISION_FIELD_MAX_CHARS)
    value: Optional[str] = Field(default=None, max_length=ENVISION_FIELD_MAX_CHARS)
    criterion: Optional[str] = Field(default=None, max_length=ENVISION_FIELD_MAX_CHARS)
    case_text: Optional[str] = Field(default=None, alias="caseText", max_length=MESSAGE_MAX_CHARS)
    judge_type: Optional[str] = Field(default=None, alias="judgeType", max_length=ENVISION_FIELD_MAX_CHARS)
    endgame_pref: Optional[str] = Field(default=None, alias="endgamePref", max_length=ENVISION_FIELD_MAX_CHARS)
    risk_posture: Optional[str] = Field(default=None, alias="riskPosture", max_length=ENVISION_FIELD_MAX_CHARS)
    strategy_style: Optional[str] = Field(default=None, alias="strategyStyle", max_length=ENVISION_FIELD_MAX_CHARS)
    decision_lens: Optional[str] = Field(default=None, alias="decisionLens", max_length=ENVISION_FIELD_MAX_CHARS)


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=MESSAGE_MAX_CHARS)
    mode: Mode = Mode.COACH
    envision: Optional[EnvisionFields] = None


# ---------- Error reporting ----------
def flatten_errors(exc: ValidationError) -> Dict[str, Any]:
    """Group pydantic errors as {formErrors: [...], fieldErrors: {field: [...]}}."""
    form_errors: List[str] = []
    field_errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error["loc"]]
        if not loc:
            form_errors.append(error["msg"])
            continue
        field_errors.setdefault(".".join(loc), []).append(error["msg"])
    return {"formErrors": form_errors, "fieldErrors": field_errors}


def friendly_error(exc: ValidationError) -> str:
    """First error as a sentence a debater can act on."""
    errors = exc.errors()
    if not errors:
        return "Invalid input"
    error = errors[0]
    field_path = ".".join(str(part) for part in error["loc"])
    error_type = error.get("type", "")

    if error_type == "string_too_long":
        if field_path == "message":
            return f"Your message is too long. Maximum length is {MESSAGE_MAX_CHARS:,} characters."
        return f"{field_path}: Value exceeds maximum length"
    if error_type in ("string_too_short", "missing"):
        if field_path == "message":
            return "Message cannot be empty."
        return f"{field_path} cannot be empty."
    if error_type == "string_type":
        return f"Invalid value for {field_path}"
    return f"{field_path}: {error['msg']}"


# ---------- Validation ----------
def check_content_policy(message: str) -> None:
    if GHOSTWRITING_PATTERN.search(message):
        raise ChatValidationError(REFUSAL_MESSAGE)


def _validate_strict(raw: Any) -> ChatRequest:
    if raw is UNPARSEABLE:
        raise ChatValidationError({"formErrors": ["Request body must be valid JSON."], "fieldErrors": {}})
    if not isinstance(raw, dict):
        raise ChatValidationError({"formErrors": ["Request body must be a JSON object."], "fieldErrors": {}})
    try:
        return ChatRequest.model_validate(raw)
    except ValidationError as exc:
        raise ChatValidationError(flatten_errors(exc))


def _validate_lenient(raw: Any) -> ChatRequest:
    body = dict(raw) if isinstance(raw, dict) else {}
    body["mode"] = coerce_mode(body.get("mode"))

    message = body.get("message")
    if message is not None and not isinstance(message, str):
        raise ChatValidationError("Invalid value for message")
    if not message or not message.strip():
        raise ChatValidationError("Message cannot be empty.")
    if not isinstance(body.get("envision"), dict):
        body.pop("envision", None)

    try:
        return ChatRequest.model_validate(body)
    except ValidationError as exc:
        raise ChatValidationError(friendly_error(exc))


def validate_chat_body(raw: Any, strict: bool = True) -> ChatRequest:
    """Turn a decoded request body into a ChatRequest or raise ChatValidationError.

    Strict mode rejects unknown modes and unparseable bodies with a field-error map.
    Lenient mode treats an unparseable body as {}, coerces the mode to coach and
    reports a single readable message.
    """
    request = _validate_strict(raw) if strict else _validate_lenient(raw)
    check_content_policy(request.message)
    if request.envision is not None and request.envision.case_text:
        check_content_policy(request.envision.case_text)
    return request
