"""
ContractGuard Analysis Engine - Two-Stage Contract Compliance Pipeline

OVERVIEW
========

Checks one contract's text against a caller-supplied, ordered set of policies
and returns the clauses that violate them.

PIPELINE ARCHITECTURE
=====================

    1. VALIDATE → 2. ANALYST (candidate_extractor.py) → 3. VERIFIER (verifier.py) → 4. RESULT

    1. VALIDATE
       - Empty contract text or empty policy list is rejected before any model call

    2. ANALYST
       - One call to the analyst model with the whole policy set
       - Reply parsed as a JSON array of candidate findings
       - Fails soft: any problem means zero candidates, never an aborted run

    3. VERIFIER
       - One binary call per policy to the guardian model, temperature 0
       - Per-policy isolation: a failed call skips that policy only
       - Positive judgments are enriched with the matching candidate, if any

    4. RESULT
       - AnalysisResult.flagged_clauses in policy order, at most one per policy
       - AnalysisRun also carries candidates, per-policy checks and stage timings
         for audit logs and CLI reports

MAIN ENTRY POINTS
=================

analyze_contract(contract_text, policies, ...) → AnalysisResult
    What the HTTP API returns.

run_analysis(contract_text, policies, ...) → AnalysisRun
    Same pipeline, keeps the intermediate artifacts.

No state survives between calls; history persistence is the caller's business.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from candidate_extractor import extract_candidates
from llm_factory import analyst_model, load_provider, verifier_model
from llm_provider import ChatProvider
from schemas import AnalysisResult, CandidateFinding, Policy
from settings import settings
from verifier import PolicyCheck, check_policies, summarize_checks

log = logging.getLogger("contractguard.analyzer")


class AnalysisInputError(ValueError):
    """Request cannot be analyzed as given (client error, maps to HTTP 400)."""


@dataclass
class AnalysisRun:
    result: AnalysisResult
    candidates: List[CandidateFinding] = field(default_factory=list)
    checks: List[PolicyCheck] = field(default_factory=list)
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def stats(self) -> Dict[str, int]:
        s = summarize_checks(self.checks)
        s["candidates"] = len(self.candidates)
        return s


def validate_request(contract_text: Optional[str], policies: Optional[Sequence[Policy]]) -> None:
    if not contract_text or not contract_text.strip():
        raise AnalysisInputError("Contract text is required")
    if not policies:
        raise AnalysisInputError("At least one enabled policy is required")


def run_analysis(
    contract_text: str,
    policies: Sequence[Policy],
    *,
    analyst: Optional[ChatProvider] = None,
    verifier: Optional[ChatProvider] = None,
    analyst_model_id: Optional[str] = None,
    verifier_model_id: Optional[str] = None,
    max_workers: Optional[int] = None,
    response_format: Optional[str] = None,
) -> AnalysisRun:
    """
    PRIMARY ANALYSIS ENTRY POINT

    Args:
        contract_text: Raw contract text, non-empty after trimming
        policies: Enabled policies in reporting order (filtering is the caller's job)
        analyst: Provider for stage 1; defaults to load_provider()
        verifier: Provider for stage 2; defaults to the analyst provider
        max_workers: Concurrent verifier calls (None uses CG_VERIFIER_MAX_WORKERS)
        response_format: "tagged" or "keyword" verifier prompt

    Returns:
        AnalysisRun with the verified result and the intermediate artifacts

    Raises:
        AnalysisInputError: Empty contract text or no policies
    """
    validate_request(contract_text, policies)
    policies = list(policies)

    if analyst is None:
        analyst = load_provider()
    if verifier is None:
        verifier = analyst

    log.info("Starting contract analysis")
    log.info("Contract length: %d characters", len(contract_text))
    log.info("Policies to check: %d", len(policies))

    t_start = time.perf_counter()
    candidates = extract_candidates(
        contract_text, policies, analyst,
        model=analyst_model_id or analyst_model(),
    )
    t_analyst = time.perf_counter()

    checks = check_policies(
        contract_text, policies, verifier, candidates,
        max_workers=max_workers,
        model=verifier_model_id or verifier_model(),
        response_format=response_format,
    )
    t_verifier = time.perf_counter()

    clauses = [c.clause for c in checks if c.clause is not None]
    run = AnalysisRun(
        result=AnalysisResult(flagged_clauses=clauses),
        candidates=candidates,
        checks=checks,
        timings={
            "analyst_s": round(t_analyst - t_start, 3),
            "verifier_s": round(t_verifier - t_analyst, 3),
            "total_s": round(t_verifier - t_start, 3),
        },
    )

    log.info("Analysis complete: %d verified violation(s)", len(clauses))
    for c in clauses:
        log.info("  %s: %s", c.policy_number, c.violation)
    if settings.API_ENABLE_TIMING_LOGS:
        log.info(
            "Timing: analyst=%.2fs verifier=%.2fs total=%.2fs",
            run.timings["analyst_s"], run.timings["verifier_s"], run.timings["total_s"],
        )
    return run


def analyze_contract(contract_text: str, policies: Sequence[Policy], **kw) -> AnalysisResult:
    return run_analysis(contract_text, policies, **kw).result


__all__ = [
    "AnalysisInputError",
    "AnalysisRun",
    "validate_request",
    "run_analysis",
    "analyze_contract",
]
