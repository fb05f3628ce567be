import pytest

from contract_analyzer import AnalysisInputError, analyze_contract, run_analysis
from llm_provider import LLMTransportError
from schemas import Policy

from conftest import (
    AUDIT,
    COMPLIANT_CONTRACT,
    CURRENCY,
    NON_COMPLIANT_CONTRACT,
    TERMINATION,
    VIOLATION_REPLY,
    FakeChatProvider,
)

MODELS = {"analyst_model_id": "analyst", "verifier_model_id": "guardian"}

ANALYST_REPLY = """[
  {"policyNumber": "POL-001", "violation": "Termination notice is 30 days, below the 90-day minimum", "text": "terminate this agreement with thirty (30) days written notice"},
  {"policyNumber": "POL-001", "violation": "duplicate", "text": "duplicate"},
  {"policyNumber": "POL-999", "violation": "made up policy", "text": "nothing"}
]"""


def test_thirty_day_notice_flags_pol_001():
    policy = Policy(number="POL-001", description="Minimum 90 days termination notice required")
    fake = FakeChatProvider(analyst_reply=ANALYST_REPLY, verdicts={policy.description: VIOLATION_REPLY})
    result = analyze_contract(NON_COMPLIANT_CONTRACT, [policy], analyst=fake, **MODELS)
    assert len(result.flagged_clauses) == 1
    clause = result.flagged_clauses[0]
    assert clause.policy_number == "POL-001"
    assert "30 days" in clause.violation
    assert "thirty (30) days" in clause.text


def test_compliant_contract_yields_no_clauses():
    fake = FakeChatProvider(analyst_reply="[]")
    result = analyze_contract(COMPLIANT_CONTRACT, [TERMINATION, CURRENCY, AUDIT], analyst=fake, **MODELS)
    assert result.flagged_clauses == []
    assert result.model_dump(by_alias=True) == {"flaggedClauses": []}


def test_no_fabricated_policy_numbers():
    fake = FakeChatProvider(analyst_reply=ANALYST_REPLY, default_verdict=VIOLATION_REPLY)
    result = analyze_contract(NON_COMPLIANT_CONTRACT, [TERMINATION, CURRENCY], analyst=fake, **MODELS)
    numbers = [c.policy_number for c in result.flagged_clauses]
    assert numbers == ["POL-001", "POL-005"]
    assert "POL-999" not in numbers


def test_analyst_failure_keeps_verifier_findings():
    fake = FakeChatProvider(
        analyst_reply=LLMTransportError("analyst down"),
        verdicts={CURRENCY.description: VIOLATION_REPLY},
    )
    run = run_analysis(NON_COMPLIANT_CONTRACT, [TERMINATION, CURRENCY], analyst=fake, **MODELS)
    assert run.candidates == []
    assert [c.policy_number for c in run.result.flagged_clauses] == ["POL-005"]
    assert run.result.flagged_clauses[0].violation == "Contract violates POL-005: All payments must be in USD"


def test_verifier_failure_does_not_escape():
    fake = FakeChatProvider(
        analyst_reply=ANALYST_REPLY,
        verdicts={TERMINATION.description: LLMTransportError("timeout")},
        default_verdict=VIOLATION_REPLY,
    )
    run = run_analysis(NON_COMPLIANT_CONTRACT, [TERMINATION, CURRENCY], analyst=fake, **MODELS)
    assert [c.policy_number for c in run.result.flagged_clauses] == ["POL-005"]
    assert run.stats == {"checked": 2, "violations": 1, "compliant": 0, "errors": 1, "candidates": 3}


def test_separate_verifier_provider():
    analyst = FakeChatProvider(analyst_reply=ANALYST_REPLY)
    guardian = FakeChatProvider(default_verdict=VIOLATION_REPLY)
    analyze_contract(NON_COMPLIANT_CONTRACT, [TERMINATION], analyst=analyst, verifier=guardian, **MODELS)
    assert len(analyst.calls) == 1
    assert len(guardian.calls) == 1


def test_repeated_runs_are_identical():
    def once():
        fake = FakeChatProvider(analyst_reply=ANALYST_REPLY, verdicts={TERMINATION.description: VIOLATION_REPLY})
        return analyze_contract(NON_COMPLIANT_CONTRACT, [TERMINATION, CURRENCY, AUDIT], analyst=fake, **MODELS)

    assert once() == once()


@pytest.mark.parametrize("text,policies", [
    ("", [TERMINATION]),
    ("   \n\t ", [TERMINATION]),
    ("real text", []),
])
def test_invalid_input_rejected_before_any_call(text, policies):
    fake = FakeChatProvider()
    with pytest.raises(AnalysisInputError):
        run_analysis(text, policies, analyst=fake, **MODELS)
    assert fake.calls == []


def test_run_records_timings():
    fake = FakeChatProvider()
    run = run_analysis(COMPLIANT_CONTRACT, [TERMINATION], analyst=fake, **MODELS)
    assert set(run.timings) == {"analyst_s", "verifier_s", "total_s"}
    assert run.timings["total_s"] >= 0
