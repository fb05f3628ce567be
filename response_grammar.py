"""
Interpretation of the verifier model's free-form answer.

Two answer shapes are understood:

* tagged:  ``<think>...</think><score>yes|no</score>``
* keyword: a leading ``COMPLIANT`` / ``VIOLATION`` token, or failing that a
  phrase scan over the whole text.

``interpret_verdict`` tries the tagged shape first and falls through to the
keyword shape. Anything that cannot be read as a clear "compliant" is treated
as a violation, so a garbled answer never hides a potential breach.
"""
from __future__ import annotations

import re
from typing import Optional

from schemas import VerifierJudgment

_THINK_RE = re.compile(r"<think>(.*?)(?:</think>|$)", re.IGNORECASE | re.DOTALL)
_SCORE_RE = re.compile(r"<score>(.*?)</score>", re.IGNORECASE | re.DOTALL)
_LEADING_RE = re.compile(r"^(compliant|violation)[:\-]?$")

_NON_COMPLIANT_RE = re.compile(r"non[\s-]?compliant|not\s+compliant")
_COMPLIANT_PHRASES = ("compliant", "complies", "satisfies", "meets the requirement")
_VIOLATION_PHRASES = ("violation", "violates", "does not comply", "fails to meet")


def _think_section(response: str) -> Optional[str]:
    m = _THINK_RE.search(response)
    return m.group(1).strip() if m else None


def parse_tagged(response: str) -> Optional[VerifierJudgment]:
    """
    Read a ``<score>`` verdict. Returns None when the answer has no score tag,
    leaving the decision to the keyword grammar.
    """
    if not response:
        return None
    score = _SCORE_RE.search(response)
    if score is None:
        return None
    return VerifierJudgment(
        is_violation="yes" in score.group(1).lower(),
        reasoning=_think_section(response) or "",
        grammar="tagged",
    )


def parse_keyword(response: str) -> VerifierJudgment:
    text = (response or "").strip()
    lowered = text.lower()

    tokens = lowered.split()
    first = tokens[0] if tokens else ""
    m = _LEADING_RE.match(first)
    if m:
        return VerifierJudgment(is_violation=m.group(1) == "violation", reasoning=text, grammar="keyword")

    non_compliant = bool(_NON_COMPLIANT_RE.search(lowered))
    compliant_signal = not non_compliant and any(p in lowered for p in _COMPLIANT_PHRASES)
    violation_signal = non_compliant or any(p in lowered for p in _VIOLATION_PHRASES)

    return VerifierJudgment(
        is_violation=not (compliant_signal and not violation_signal),
        reasoning=text,
        grammar="keyword",
    )


def interpret_verdict(response: str) -> VerifierJudgment:
    tagged = parse_tagged(response)
    if tagged is not None:
        return tagged

    think = _think_section(response or "")
    if think is None:
        return parse_keyword(response)

    # Reasoning without a score: judge what the model said after thinking.
    remainder = _THINK_RE.sub(" ", response).strip()
    verdict = parse_keyword(remainder)
    return VerifierJudgment(is_violation=verdict.is_violation, reasoning=think, grammar="keyword")
