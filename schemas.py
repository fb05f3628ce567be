# schemas.py
from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional


class _WireModel(BaseModel):
    # Python attributes are snake_case; the wire format keeps the camelCase keys
    # the browser client already sends and reads.
    model_config = ConfigDict(populate_by_name=True, frozen=True)


# ---------- Inputs ----------
class Policy(_WireModel):
    number: str                      # caller-assigned, e.g. "POL-001"
    description: str                 # natural-language requirement
    enabled: bool = True


class ChatMessage(_WireModel):
    role: Literal["system", "user", "assistant"]
    content: str


# ---------- Stage 1: analyst ----------
class CandidateFinding(_WireModel):
    # Unconfirmed; only used to enrich verified clauses.
    policy_number: str = Field(default="", alias="policyNumber")
    violation: str = ""
    text: str = ""


# ---------- Stage 2: verifier ----------
class VerifierJudgment(_WireModel):
    is_violation: bool = Field(alias="isViolation")
    reasoning: str = ""
    grammar: Literal["tagged", "keyword"] = "keyword"


class VerifiedClause(_WireModel):
    policy_number: str = Field(alias="policyNumber")
    violation: str
    text: str


# ---------- Request / result ----------
class AnalyzeRequest(_WireModel):
    contract_text: str = Field(default="", alias="contractText")
    policies: List[Policy] = Field(default_factory=list)
    # Used when policies is empty
    template_id: Optional[str] = Field(default=None, alias="templateId")
    contract_name: Optional[str] = Field(default=None, alias="contractName")


class AnalysisResult(_WireModel):
    flagged_clauses: List[VerifiedClause] = Field(default_factory=list, alias="flaggedClauses")


class ParsedFile(_WireModel):
    text: str


class ErrorResponse(_WireModel):
    error: str


# ---------- Policy templates ----------
class PolicyTemplate(_WireModel):
    id: str
    name: str
    description: str = ""
    policies: List[Policy] = Field(default_factory=list)


# ---------- History ----------
class HistoryEntry(_WireModel):
    id: int
    created_at: str = Field(alias="createdAt")
    contract_name: Optional[str] = Field(default=None, alias="contractName")
    contract_excerpt: str = Field(default="", alias="contractExcerpt")
    policy_count: int = Field(default=0, alias="policyCount")
    flagged_clauses: List[VerifiedClause] = Field(default_factory=list, alias="flaggedClauses")
