"""
Coaching modes for LD Clash.

Each mode is a `ModeSpec`: the shared coach persona, the mode's task text,
the output contract the model must follow, and the output-token budget.
Lookups never fail; anything unrecognised becomes `coach`.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Union


class Mode(str, Enum):
    COACH = "coach"
    DRILL = "drill"
    REBUTTAL = "rebuttal"
    CX = "cx"
    FLOW = "flow"
    ENVISION = "envision"


DEFAULT_MODE = Mode.COACH

DEFAULT_MAX_OUTPUT_TOKENS = 1200
ENVISION_MAX_OUTPUT_TOKENS = 4000

PERSONA = (
    "You are an elite Lincoln-Douglas (LD) debate coach. "
    "Give concrete, structured, round-winning advice. Prefer numbered bullets. "
    "Do NOT write full speeches or full cases. "
    "You may provide outlines and at most 1–2 sentences of example phrasing. "
    "Focus on: VC alignment, warrants, clash, offense/defense, weighing, collapse, and strategy."
)


# ---------- Output contracts ----------
@dataclass(frozen=True)
class PlainTextContract:
    """No Markdown at all; plain labels and dash bullets."""

    kind: str = "plain"

    def directive(self) -> str:
        return (
            "NO MARKDOWN:\n"
            "- Do NOT use Markdown.\n"
            '- No headings like "###" or "##".\n'
            '- No bold markers like "**".\n'
            "- Plain text only.\n"
            '- Use ALL CAPS labels like "SCORECARD:" (optional).\n'
            '- Use "-" for bullets.'
        )


@dataclass(frozen=True)
class SectionedContract:
    """Exactly these headings, in this order, with dash bullets under each."""

    headings: Tuple[str, ...] = ("DIAGNOSIS", "PRIORITY FIXES", "DRILLS", "NEXT ROUND")
    empty_token: str = "- NONE"
    kind: str = "sections"

    def directive(self) -> str:
        lines = [
            "OUTPUT FORMAT (STRICT):",
            f"- Output exactly {len(self.headings)} sections, in this order, each heading on its own line:",
        ]
        lines += [f"  {heading}:" for heading in self.headings]
        lines += [
            '- Every line under a heading starts with "- ".',
            f'- If a section has nothing to say, write "{self.empty_token}" under it.',
            "- No other headings, no Markdown, no text before the first heading or after the last section.",
        ]
        return "\n".join(lines)


@dataclass(frozen=True)
class EnvisionContract:
    """Full-round report skeleton used by envision mode."""

    parts: Tuple[str, ...] = (
        "INTAKE CHECK",
        "TERRAIN SETUP",
        "PREDICTED OPPONENT STRATEGY",
        "JUDGE ADAPTATION",
        "ROUND WALKTHROUGH",
        "ENDGAME PACKAGE",
        "TRAINING ASSIGNMENTS",
    )
    kind: str = "envision"

    def directive(self) -> str:
        lines = [
            f"REQUIRED OUTPUT SKELETON ({len(self.parts)} parts, in order, plain text, no Markdown):",
        ]
        for i, part in enumerate(self.parts, start=1):
            lines.append(f"{i}) {part}: {ENVISION_PART_GUIDANCE[part]}")
        lines.append('Use "-" for bullets. Write "- NONE" under a part only if the intake gives you nothing to work with.')
        return "\n".join(lines)


OutputContract = Union[PlainTextContract, SectionedContract, EnvisionContract]

ENVISION_PART_GUIDANCE: Dict[str, str] = {
    "INTAKE CHECK": "restate topic, side, framework and judge; flag anything missing or contradictory.",
    "TERRAIN SETUP": "the framework debate, the burdens each side carries, and where the round will actually be decided.",
    "PREDICTED OPPONENT STRATEGY": "the 2–3 most likely opposing positions, their best offense, and the traps they will set.",
    "JUDGE ADAPTATION": "how the stated judge type and decision lens change evidence use, speed, and weighing language.",
    "ROUND WALKTHROUGH": "speech by speech (AC, CX, NC, CX, 1AR, NR, 2AR) what to prioritize, with time splits; outlines only, no scripts.",
    "ENDGAME PACKAGE": "the collapse, the voters, the weighing, and the ballot story for the final speech, matched to the stated endgame preference and risk posture.",
    "TRAINING ASSIGNMENTS": "3–5 concrete drills with time limits and a measurable target for each.",
}


# ---------- Glossary ----------
# Injected verbatim into envision instructions to steer vocabulary.
TECHNIQUE_GLOSSARY: Tuple[Tuple[str, str], ...] = (
    ("Value (V)", "the ultimate good the resolution is evaluated by, e.g. justice or morality."),
    ("Value criterion (VC)", "the mechanism or standard that measures who best achieves the value."),
    ("Framework", "value plus criterion plus any burdens; decides how offense is weighed."),
    ("Framework hijack", "winning your offense under the opponent's framework as well as your own."),
    ("Contention", "a main argument: claim, warrant, impact."),
    ("Warrant", "the reason a claim is true; evidence or analysis, not assertion."),
    ("Impact", "why the argument matters under the framework."),
    ("Link", "the connection between a position and its impact or the criterion."),
    ("Link turn", "showing the opponent's argument actually links to your side."),
    ("Impact turn", "conceding the link but arguing the impact is good, not bad (or vice versa)."),
    ("Offense", "a reason to vote for you."),
    ("Defense", "a reason the opponent's argument should not count; mitigation, not a voter."),
    ("Clash", "direct engagement between competing arguments on the same question."),
    ("Extension", "carrying an argument forward into a later speech with its warrant and impact."),
    ("Drop / concession", "an argument left unanswered; treated as true if extended."),
    ("Cross-application", "using an argument made in one place to answer another."),
    ("Preempt / spike", "a short argument placed early to block an expected response."),
    ("Turn", "flipping an opposing argument into offense for your side."),
    ("Double turn", "making contradictory turns that leave the turner worse off; avoid it."),
    ("Weighing", "comparing impacts by magnitude, probability, timeframe, reversibility, or framework."),
    ("Meta-weighing", "arguing which weighing mechanism comes first."),
    ("Collapse", "narrowing the final speeches to the one or two best lines of offense."),
    ("Voter / voting issue", "an explicit reason, framed for the judge, to sign the ballot your way."),
    ("Ballot story", "a short narrative that ties the winning argument to the framework and the decision."),
    ("Burden", "what a side must prove to win; can be set by framework or interpretation."),
    ("Burden of rejoinder", "the obligation to answer arguments made by the other side."),
    ("Presumption", "which side wins when there is no offense; contested, usually thin."),
    ("Permissibility", "whether an action being permitted affirms or negates; LD-specific trigger."),
    ("Kritik (K)", "an argument that challenges the assumptions of the resolution or the opponent's case."),
    ("Theory", "an argument about the rules or norms of debate itself, e.g. a shell against an abusive practice."),
    ("Topicality (T)", "arguing the affirmative's interpretation falls outside the resolution."),
    ("Counterplan (CP)", "a competitive alternative advocacy presented by the negative."),
    ("Disadvantage (DA)", "a negative consequence linked to the affirmative's advocacy."),
    ("Perm", "affirmative test of competition: do both the plan and the counterplan."),
    ("Roadmap", "a short order statement given before a speech."),
    ("Signposting", "labeling where you are on the flow as you speak."),
    ("Flow", "the running notes of every argument and response in the round."),
    ("Lay judge", "a judge with little debate experience; rewards clarity, persuasion, slower delivery."),
    ("Flow judge", "a judge who tracks every argument on the flow and votes on technical concessions."),
    ("Tech judge", "a judge comfortable with speed, theory, and progressive positions."),
    ("Even-if", "conditional weighing: even if the opponent wins X, you still win because of Y."),
    ("Time skew", "the structural time imbalance between affirmative and negative speeches."),
    ("2AR / 2NR", "the final affirmative rebuttal and final negative rebuttal; where collapses happen."),
    ("1AR", "first affirmative rebuttal; must answer the NC and extend the AC under time pressure."),
)


def render_glossary() -> str:
    lines = ["TECHNIQUE GLOSSARY (use this vocabulary precisely):"]
    lines += [f"- {term}: {definition}" for term, definition in TECHNIQUE_GLOSSARY]
    return "\n".join(lines)


# ---------- Registry ----------
@dataclass(frozen=True)
class ModeSpec:
    mode: Mode
    label: str
    task: str
    contract: OutputContract
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    persona: str = PERSONA
    include_glossary: bool = False


_TASKS: Dict[Mode, Tuple[str, str]] = {
    Mode.COACH: (
        "Coach",
        "Coach mode: Identify the 3 highest-impact issues, what matters most to win, and a prioritized fix plan.",
    ),
    Mode.DRILL: (
        "Drill",
        "Drill mode: Create 3–5 timed drills (10–15 min each) with scoring rubrics and what 'excellent' looks like.",
    ),
    Mode.REBUTTAL: (
        "Rebuttal",
        "Rebuttal mode: No full scripts. Give the best 1–2 voters, key turns/answers, weighing, and an outline for the 1AR/2NR.",
    ),
    Mode.CX: (
        "Cross-Ex",
        "CX mode: Give 10 sharp cross-ex questions + follow-ups + what each question is trying to expose.",
    ),
    Mode.FLOW: (
        "Flow",
        "Flow mode: Label arguments clearly and show what was answered vs dropped; recommend the best collapse path.",
    ),
}

ENVISION_TASK = (
    "Envision mode: Simulate the full round this debater is about to have. Use the round intake "
    "(topic, side, framework, case, judge profile, endgame preference, risk posture, strategy style, "
    "decision lens) to predict how the round unfolds and coach them through every speech. "
    "Outlines and strategic calls only; never write the speeches."
)


def _build_registry(output_style: str) -> Dict[Mode, ModeSpec]:
    contract = SectionedContract() if output_style == "sections" else PlainTextContract()
    registry = {
        mode: ModeSpec(mode=mode, label=label, task=task, contract=contract)
        for mode, (label, task) in _TASKS.items()
    }
    registry[Mode.ENVISION] = ModeSpec(
        mode=Mode.ENVISION,
        label="Envision",
        task=ENVISION_TASK,
        contract=EnvisionContract(),
        max_output_tokens=ENVISION_MAX_OUTPUT_TOKENS,
        include_glossary=True,
    )
    return registry


_REGISTRIES: Dict[str, Dict[Mode, ModeSpec]] = {
    "plain": _build_registry("plain"),
    "sections": _build_registry("sections"),
}


def coerce_mode(value: Optional[object]) -> Mode:
    """Map any incoming value onto a registered mode, defaulting to coach."""
    if isinstance(value, Mode):
        return value
    if isinstance(value, str):
        try:
            return Mode(value.strip().lower())
        except ValueError:
            pass
    return DEFAULT_MODE


def get_mode_spec(mode: Optional[object], output_style: str = "plain") -> ModeSpec:
    registry = _REGISTRIES.get(output_style, _REGISTRIES["plain"])
    return registry[coerce_mode(mode)]


def mode_choices() -> Tuple[str, ...]:
    return tuple(m.value for m in Mode)
