"""
Stage 2: the verifier (guardian) model judges each policy on its own.

Only a positive verifier judgment puts a clause in the result. Analyst
candidates, when one matches the policy number, supply the violation text and
quoted clause; otherwise fixed fallback strings are used.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

from candidate_extractor import index_candidates
from llm_provider import ChatProvider, LLMProviderError
from response_grammar import interpret_verdict
from schemas import CandidateFinding, ChatMessage, Policy, VerifiedClause, VerifierJudgment
from settings import settings

log = logging.getLogger("contractguard.verifier")

FALLBACK_VIOLATION = "Contract violates {number}: {description}"
FALLBACK_TEXT = "Violation detected by verification stage"

TAGGED_SYSTEM_PROMPT = """You are an enterprise contract risk assessor. Your role is to evaluate if a contract violates a specified policy requirement.

You MUST respond with:
- <think>your reasoning</think> tags containing your analysis
- <score>yes</score> or <score>no</score> tags for your assessment

Be precise: "yes" means the contract violates the policy, "no" means it complies."""

KEYWORD_SYSTEM_PROMPT = """You are a contract compliance judge. Your role is to decide if a contract violates a specified policy requirement.

Start your answer with exactly one word:
- COMPLIANT if the contract satisfies the policy
- VIOLATION if the contract violates the policy

Then give a one-sentence reason, for example:
VIOLATION - 30 days is less than the 90-day minimum"""


@dataclass(frozen=True)
class PolicyCheck:
    """Outcome of one verifier call. ``judgment`` is None when the call failed."""
    policy: Policy
    judgment: Optional[VerifierJudgment]
    clause: Optional[VerifiedClause]
    elapsed: float
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.judgment is None


def build_verifier_messages(
    contract_text: str,
    policy: Policy,
    response_format: Optional[str] = None,
) -> List[ChatMessage]:
    fmt = (response_format or settings.VERIFIER_RESPONSE_FORMAT).lower()
    if fmt == "keyword":
        system = KEYWORD_SYSTEM_PROMPT
        tail = "Does this contract violate the specified policy? Start with COMPLIANT or VIOLATION."
    elif fmt == "tagged":
        system = TAGGED_SYSTEM_PROMPT
        tail = "Does this contract violate the specified policy? Respond with <think> and <score> tags."
    else:
        raise ValueError(f"Unknown verifier response format: {response_format}")

    user = f"POLICY REQUIREMENT: {policy.description}\n\nCONTRACT TEXT:\n{contract_text}\n\n{tail}"
    return [
        ChatMessage(role="system", content=system),
        ChatMessage(role="user", content=user),
    ]


def reconcile(
    policy: Policy,
    judgment: VerifierJudgment,
    candidates_by_number: Mapping[str, CandidateFinding],
) -> Optional[VerifiedClause]:
    """Turn a verifier judgment into a reported clause, or None when the policy is satisfied."""
    if not judgment.is_violation:
        return None
    candidate = candidates_by_number.get(policy.number)
    violation = candidate.violation if candidate and candidate.violation else None
    text = candidate.text if candidate and candidate.text else None
    return VerifiedClause(
        policy_number=policy.number,
        violation=violation or FALLBACK_VIOLATION.format(number=policy.number, description=policy.description),
        text=text or FALLBACK_TEXT,
    )


def check_policy(
    contract_text: str,
    policy: Policy,
    provider: ChatProvider,
    candidates_by_number: Optional[Mapping[str, CandidateFinding]] = None,
    *,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    response_format: Optional[str] = None,
) -> PolicyCheck:
    model = model or settings.GUARDIAN_MODEL
    temperature = settings.VERIFIER_TEMPERATURE if temperature is None else temperature
    messages = build_verifier_messages(contract_text, policy, response_format)

    t0 = time.perf_counter()
    try:
        raw = provider.chat(model=model, messages=messages, temperature=temperature)
    except LLMProviderError as e:
        elapsed = time.perf_counter() - t0
        log.error("  %s: verifier error after %.2fs, skipped: %s", policy.number, elapsed, e)
        return PolicyCheck(policy=policy, judgment=None, clause=None, elapsed=elapsed, error=str(e))
    elapsed = time.perf_counter() - t0

    judgment = interpret_verdict(raw)
    clause = reconcile(policy, judgment, candidates_by_number or {})

    status = "VIOLATION" if judgment.is_violation else "COMPLIANT"
    log.info("  %s: %s (%.2fs, %s)", policy.number, status, elapsed, judgment.grammar)
    if judgment.reasoning:
        log.info("    reasoning: %s", judgment.reasoning[:120])
    return PolicyCheck(policy=policy, judgment=judgment, clause=clause, elapsed=elapsed)


def _unique_by_number(policies: Sequence[Policy]) -> List[Policy]:
    seen = set()
    out = []
    for p in policies:
        if p.number in seen:
            log.warning("Duplicate policy number %s ignored", p.number)
            continue
        seen.add(p.number)
        out.append(p)
    return out


def check_policies(
    contract_text: str,
    policies: Sequence[Policy],
    provider: ChatProvider,
    candidates: Sequence[CandidateFinding] = (),
    *,
    max_workers: Optional[int] = None,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    response_format: Optional[str] = None,
) -> List[PolicyCheck]:
    """
    Judge every policy independently.

    Args:
        contract_text: Full contract text sent with every call
        policies: Policies in reporting order; repeated numbers are checked once
        provider: Chat backend for the verifier model
        candidates: Analyst findings used to enrich positive judgments
        max_workers: Concurrent calls. 1 (the default setting) runs in list order.

    Returns:
        One PolicyCheck per unique policy, in policy order regardless of
        completion order
    """
    unique = _unique_by_number(policies)
    by_number = index_candidates(candidates)
    workers = settings.get_verifier_workers(max_workers)
    model = model or settings.GUARDIAN_MODEL

    log.info("STAGE 2: verifier %s over %d policies (workers=%d)", model, len(unique), workers)

    def run(policy: Policy) -> PolicyCheck:
        return check_policy(
            contract_text, policy, provider, by_number,
            model=model, temperature=temperature, response_format=response_format,
        )

    if workers == 1 or len(unique) <= 1:
        return [run(p) for p in unique]

    with ThreadPoolExecutor(max_workers=min(workers, len(unique))) as pool:
        # map() yields in submission order, which is policy order.
        return list(pool.map(run, unique))


def verify(
    contract_text: str,
    policies: Sequence[Policy],
    candidates: Sequence[CandidateFinding],
    provider: ChatProvider,
    **kw,
) -> List[VerifiedClause]:
    checks = check_policies(contract_text, policies, provider, candidates, **kw)
    return [c.clause for c in checks if c.clause is not None]


def summarize_checks(checks: Sequence[PolicyCheck]) -> Dict[str, int]:
    return {
        "checked": len(checks),
        "violations": sum(1 for c in checks if c.clause is not None),
        "compliant": sum(1 for c in checks if c.judgment is not None and c.clause is None),
        "errors": sum(1 for c in checks if c.failed),
    }
