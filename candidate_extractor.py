"""
Stage 1: the analyst model proposes candidate violations.

The analyst is asked for a bare JSON array but models regularly wrap it in prose
or code fences, so the reply goes through ``extract_json_array`` before it is
trusted. Candidates are hints only; the verifier decides what gets reported.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence

from llm_provider import ChatProvider
from schemas import CandidateFinding, ChatMessage, Policy
from settings import settings

log = logging.getLogger("contractguard.extractor")

ANALYST_SYSTEM_PROMPT = """You are a contract compliance analyst. Analyze contracts for policy violations and respond with valid JSON only.

When violations are found, return:
[{"policyNumber":"POL-001","violation":"description","text":"exact quote"}]

When no violations exist, return: []

Never include markdown, explanations, or invalid JSON."""


def format_policy_block(policies: Iterable[Policy]) -> str:
    return "\n".join(f"{p.number}: {p.description}" for p in policies)


def build_analyst_messages(contract_text: str, policies: Sequence[Policy]) -> List[ChatMessage]:
    user = (
        f"POLICIES:\n{format_policy_block(policies)}\n\n"
        f"CONTRACT:\n{contract_text}\n\n"
        "Identify all policy violations and respond with ONLY valid JSON array."
    )
    return [
        ChatMessage(role="system", content=ANALYST_SYSTEM_PROMPT),
        ChatMessage(role="user", content=user),
    ]


_decoder = json.JSONDecoder()


def extract_json_array(raw: Optional[str]) -> Optional[list]:
    """
    Best-effort structured extraction of a JSON array from free text.

    Tries each ``[`` in ``raw`` in order as the start of a balanced JSON value
    and strict-parses it. The first value that parses to a list is returned;
    stray brackets in surrounding prose are skipped.

    Args:
        raw: Model output that may surround the array with prose or fences

    Returns:
        The parsed list, or None when no region parses to a JSON array
    """
    if not raw:
        return None
    idx = raw.find("[")
    while idx != -1:
        try:
            value, end = _decoder.raw_decode(raw, idx)
        except ValueError:
            idx = raw.find("[", idx + 1)
            continue
        if isinstance(value, list):
            return value
        idx = raw.find("[", end)
    return None


def _field(item: Dict[str, Any], key: str) -> str:
    value = item.get(key)
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value)


def parse_candidates(raw: Optional[str]) -> List[CandidateFinding]:
    items = extract_json_array(raw)
    if items is None:
        if raw and raw.strip():
            log.warning("Analyst reply has no parseable JSON array: %r", raw[:200])
        return []

    out: List[CandidateFinding] = []
    for item in items:
        if not isinstance(item, dict):
            log.debug("Skipping non-object candidate: %r", item)
            continue
        out.append(
            CandidateFinding(
                policy_number=_field(item, "policyNumber"),
                violation=_field(item, "violation"),
                text=_field(item, "text"),
            )
        )
    return out


def index_candidates(candidates: Iterable[CandidateFinding]) -> Dict[str, CandidateFinding]:
    """First candidate per policy number wins; later duplicates are ignored."""
    by_number: Dict[str, CandidateFinding] = {}
    for c in candidates:
        if c.policy_number and c.policy_number not in by_number:
            by_number[c.policy_number] = c
    return by_number


def extract_candidates(
    contract_text: str,
    policies: Sequence[Policy],
    provider: ChatProvider,
    *,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
) -> List[CandidateFinding]:
    """
    Run the analyst model once over the whole policy set.

    Never raises: a transport failure or an unreadable reply yields an empty
    list so the verifier stage still runs.
    """
    model = model or settings.ANALYST_MODEL
    temperature = settings.ANALYST_TEMPERATURE if temperature is None else temperature

    log.info("STAGE 1: analyst %s over %d policies", model, len(policies))
    t0 = time.perf_counter()
    try:
        raw = provider.chat(
            model=model,
            messages=build_analyst_messages(contract_text, policies),
            temperature=temperature,
        )
        candidates = parse_candidates(raw)
    except Exception as e:
        log.warning("Analyst stage failed, continuing with verifier only: %s", e)
        return []

    log.info("Analyst proposed %d candidate(s) in %.2fs", len(candidates), time.perf_counter() - t0)
    for c in candidates:
        log.debug("  candidate %s: %s", c.policy_number, c.violation)
    return candidates
