# ldclash/prompts.py
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from ldclash.modes import Mode, ModeSpec, render_glossary
from ldclash.validator import ChatRequest, EnvisionFields

NOT_PROVIDED = "(not provided)"

# (attribute, label) in the order they appear in the round intake block.
ENVISION_LABELS: Tuple[Tuple[str, str], ...] = (
    ("topic", "TOPIC"),
    ("side", "SIDE"),
    ("value", "VALUE"),
    ("criterion", "CRITERION"),
    ("judge_type", "JUDGE TYPE"),
    ("endgame_pref", "ENDGAME PREFERENCE"),
    ("risk_posture", "RISK POSTURE"),
    ("strategy_style", "STRATEGY STYLE"),
    ("decision_lens", "DECISION LENS"),
)


@dataclass(frozen=True)
class PromptBundle:
    instructions: str
    input: str
    max_output_tokens: int
    temperature: Optional[float] = None
    mode: Mode = Mode.COACH


def build_instructions(spec: ModeSpec) -> str:
    parts = [spec.persona, f"MODE: {spec.mode.value}\nTASK: {spec.task}"]
    if spec.include_glossary:
        parts.append(render_glossary())
    parts.append(spec.contract.directive())
    return "\n\n".join(parts)


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _extra_label(key: str) -> str:
    # judgeNotes / judge_notes -> JUDGE NOTES
    spaced = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", key).replace("_", " ")
    return spaced.strip().upper()


def compose_envision_input(message: str, fields: Optional[EnvisionFields]) -> str:
    """Merge structured round parameters and the free-text message into one block."""
    fields = fields or EnvisionFields()
    lines: List[str] = ["ROUND INTAKE"]
    for attr, label in ENVISION_LABELS:
        lines.append(f"{label}: {_clean(getattr(fields, attr)) or NOT_PROVIDED}")

    for key, value in (fields.model_extra or {}).items():
        text = _clean(value)
        if text:
            lines.append(f"{_extra_label(key)}: {text}")

    case_text = _clean(fields.case_text)
    message = message.strip()
    lines.append("")
    lines.append("CASE:")
    lines.append(case_text or message or NOT_PROVIDED)
    if case_text and message and message != case_text:
        lines.append("")
        lines.append("COACH NOTES:")
        lines.append(message)
    return "\n".join(lines)


def build_prompt(spec: ModeSpec, request: ChatRequest, temperature: Optional[float] = None) -> PromptBundle:
    """Compose the instructions and input for one completion call. Input is assumed valid."""
    if spec.mode is Mode.ENVISION:
        user_input = compose_envision_input(request.message, request.envision)
    else:
        user_input = request.message
    return PromptBundle(
        instructions=build_instructions(spec),
        input=user_input,
        max_output_tokens=spec.max_output_tokens,
        temperature=temperature,
        mode=spec.mode,
    )
